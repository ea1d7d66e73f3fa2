"""
Run all analyses for a monotonic effects model.

This script runs the complete analysis pipeline:
1. Synthetic validation (optional)
2. Model fit with coefficient summary
3. Marginal effects of each monotonic predictor, LOO and Stan export

Usage:
    python -m mono_effects.run_all_analyses data.csv "ls ~ age + mo(income)" \
        --levels income=below_20,20_to_40,40_to_100,greater_100 [--output-dir out]
"""

import argparse
from pathlib import Path

from mono_effects.monotonic_model import main as run_monotonic_model, parse_levels
from mono_effects.synthetic_validation import run_validation


def run(data_path, formula, levels=None, output_dir=".", validate=False,
        n_samples=2000, n_tune=1000):
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("="*70)
    print("MONOTONIC EFFECTS MODEL - FULL ANALYSIS")
    print("="*70)

    # 1. Synthetic validation
    if validate:
        print("\n" + "#"*70)
        print("# STEP 1: SYNTHETIC VALIDATION")
        print("#"*70)
        run_validation()

    # 2. Model fit
    print("\n" + "#"*70)
    print("# STEP 2: MONOTONIC EFFECTS MODEL")
    print("#"*70)
    fit, effects = run_monotonic_model(
        data_path, formula, levels=levels,
        output_path=output_dir / "summary.csv",
        n_samples=n_samples, n_tune=n_tune
    )
    effects.to_csv(output_dir / "monotonic_effects.csv", index=False)

    # 3. Marginal effects, LOO and Stan export
    print("\n" + "#"*70)
    print("# STEP 3: MARGINAL EFFECTS AND MODEL CHECKS")
    print("#"*70)
    for name, table in fit.marginal_effects().items():
        print(f"\nmo({name}):")
        print(table.round(3).to_string(index=False))
        table.to_csv(output_dir / f"marginal_effects_{name}.csv", index=False)

    loo = fit.loo()
    print(f"\nLOOIC = {loo['looic']:.2f} (SE {loo['se_looic']:.2f}), p_loo = {loo['p_loo']:.2f}")

    (output_dir / "model.stan").write_text(fit.stancode())

    # Final summary
    print("\n" + "="*70)
    print("ANALYSIS COMPLETE")
    print("="*70)
    print(f"\nResults saved to: {output_dir.absolute()}")
    print("  - summary.csv")
    print("  - monotonic_effects.csv")
    print("  - marginal_effects_<predictor>.csv")
    print("  - model.stan")

    return fit


def main(argv=None):
    parser = argparse.ArgumentParser(description='Run the monotonic effects analysis pipeline')
    parser.add_argument('data_path', type=str, help='Path to the CSV file')
    parser.add_argument('formula', type=str, help="Model formula, e.g. 'ls ~ age + mo(income)'")
    parser.add_argument('--levels', action='append', default=[],
                        help="Ordered levels of a column, e.g. income=low,mid,high")
    parser.add_argument('--output-dir', type=str, default='.', help='Directory for results')
    parser.add_argument('--validate', action='store_true', help='Run the synthetic validation first')
    parser.add_argument('--samples', type=int, default=2000, help='Posterior samples per chain')
    parser.add_argument('--tune', type=int, default=1000, help='Tuning samples per chain')

    args = parser.parse_args(argv)
    run(args.data_path, args.formula, parse_levels(args.levels), args.output_dir,
        validate=args.validate, n_samples=args.samples, n_tune=args.tune)


if __name__ == "__main__":
    main()
