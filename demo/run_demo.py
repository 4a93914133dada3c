import os
import sys
import logging
import argparse

# Ensure src is importable
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from Filters.converter import read_grayscale
from Filters.gradient import GradientOperator, Norm
from Filters.output_filter import EdgeMapWriter
from Pipelines.canny import CannyConfig, CannyPipeline
from demo_controller import DemoController
from Utils.log import set_level, setup_logger

logger = setup_logger("demo")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Canny edge detection on one image or a directory of images")
    p.add_argument("--image", type=str, default=None, help="Run on a single image and print a summary")
    p.add_argument("--input", type=str, default=os.path.join(ROOT, "data", "input"))
    p.add_argument("--output", type=str, default=os.path.join(ROOT, "data", "output"))
    p.add_argument("--n-workers", type=int, default=2, help="Number of workers per stage (batch mode)")
    p.add_argument("--queue-size", type=int, default=8, help="Bounded queue size between stages (batch mode)")
    p.add_argument("--norm", choices=[n.value for n in Norm], default=Norm.L2.value)
    p.add_argument("--operator", choices=[o.value for o in GradientOperator], default=GradientOperator.SOBEL.value)
    p.add_argument("--low", type=int, default=None, help="Low threshold (omit both for automatic)")
    p.add_argument("--high", type=int, default=None, help="High threshold (omit both for automatic)")
    p.add_argument("--min-edge-size", type=int, default=0)
    p.add_argument("--signed", action="store_true", help="Keep the sign of the x/y derivatives")
    p.add_argument("--seed", type=int, default=None, help="Random seed for automatic thresholds")
    p.add_argument("--verbose", "-v", action="store_true")
    return p


def config_from_args(args) -> CannyConfig:
    if (args.low is None) != (args.high is None):
        raise SystemExit("error: --low and --high must be given together")
    thresholds = None if args.low is None else (args.low, args.high)
    return CannyConfig(norm=args.norm, thresholds=thresholds, min_edge_size=args.min_edge_size,
                       operator=args.operator, signed_gradient=args.signed, seed=args.seed)


def run_single(path: str, output: str, config: CannyConfig) -> int:
    result = CannyPipeline(config).run(read_grayscale(path))
    env = {"payload": result, "meta": {"orig_path": path}}
    written = EdgeMapWriter(output).process(env)["payload"]
    summary = result.summary()
    print(f"{os.path.basename(path)}: {summary['rows']}x{summary['columns']}, "
          f"thresholds low={summary['low_threshold']} high={summary['high_threshold']} "
          f"({'computed' if summary['thresholds_computed'] else 'supplied'})")
    print(f"  edge pixels={summary['edge_pixels']} strong={summary['strong_pixels']} weak={summary['weak_pixels']}")
    for kind, out_path in written.items():
        print(f"  {kind}: {out_path}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_level(logging.DEBUG)

    try:
        config = config_from_args(args)
        if args.image:
            return run_single(args.image, args.output, config)

        os.makedirs(args.input, exist_ok=True)
        os.makedirs(args.output, exist_ok=True)
        controller = DemoController(input_dir=args.input, output_dir=args.output,
                                    workers=args.n_workers, queue_size=args.queue_size, config=config)
        results = controller.run_blocking()
        print(f"Processed {len(results)} image(s) into {args.output}")
        return 0
    except (ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
