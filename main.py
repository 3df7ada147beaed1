import argparse

from tabular_gbm.pipeline import PipelineRunner


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Tune, fit and evaluate a boosted-tree model")
    parser.add_argument("--config", default="config/default.yaml", help="Path to the YAML config")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    """Run the full training and evaluation pipeline."""
    args = parse_args(argv)
    runner = PipelineRunner(args.config)
    runner.run()


if __name__ == "__main__":
    main()
