from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .engine import FacetsEngine
from .external import ExternalCommandError
from .models import GENOMES, RunConfig, default_sample_id
from .pipeline import planned_outputs, run_pipeline
from .validation import check_counts_file


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    if isinstance(err, ExternalCommandError):
        msg = str(err)
    else:
        msg = f"{err.__class__.__name__}: {err}"

    sys.stderr.write(msg + "\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def _str_to_bool(s: str) -> bool:
    v = s.strip().lower()
    if v in ("true", "t", "yes", "y", "1"):
        return True
    if v in ("false", "f", "no", "n", "0"):
        return False
    raise argparse.ArgumentTypeError(f"Expected TRUE or FALSE, got: {s}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="facetsrunner",
        description="Run FACETS and associated output, input SNP read counts from snp-pileup.",
    )
    p.add_argument("--version", action="version", version=f"facetsrunner {__version__}")

    p.add_argument(
        "-f",
        "--counts-file",
        required=True,
        help="Merged, gzipped tumor-normal output from snp-pileup.",
    )
    p.add_argument(
        "-s",
        "--sample-id",
        default=None,
        help="Sample ID, preferably Tumor_Normal to keep track of the normal used "
        "(default: counts file name without .dat.gz/.gz).",
    )
    p.add_argument(
        "-D",
        "--directory",
        required=True,
        help="Output directory to which all output files are written.",
    )
    p.add_argument(
        "-e",
        "--everything",
        action="store_true",
        help="Run full suite: QC, gene-level and arm-level calls, instability metrics.",
    )
    p.add_argument("-g", "--genome", choices=list(GENOMES), default="hg19", help="Reference genome [default %(default)s].")
    p.add_argument("-c", "--cval", type=int, default=50, help="Segmentation parameter (cval) [default %(default)s].")
    p.add_argument(
        "-pc",
        "--purity-cval",
        type=int,
        nargs="?",
        const=100,
        default=None,
        help="Enable a two-pass run; purity-pass segmentation parameter (cval). "
        "Given without a value, uses 100.",
    )
    p.add_argument(
        "-m",
        "--min-nhet",
        type=int,
        default=15,
        help="Min. number of heterozygous SNPs required for clustering [default %(default)s].",
    )
    p.add_argument(
        "-pm",
        "--purity-min-nhet",
        type=int,
        default=15,
        help="If two pass, purity-pass min. number of heterozygous SNPs [default %(default)s].",
    )
    p.add_argument(
        "-n",
        "--snp-window-size",
        type=int,
        default=250,
        help="Window size for heterozygous SNPs [default %(default)s].",
    )
    p.add_argument(
        "-nd",
        "--normal-depth",
        type=int,
        default=35,
        help="Min. depth in normal to keep SNPs [default %(default)s].",
    )
    p.add_argument("-d", "--dipLogR", dest="dip_log_r", type=float, default=None, help="Manual dipLogR.")
    p.add_argument("-S", "--seed", type=int, default=100, help="Manual seed value [default %(default)s].")
    p.add_argument(
        "-l",
        "--legacy-output",
        type=_str_to_bool,
        nargs="?",
        const=True,
        default=False,
        help="Create legacy output files (.Rdata and .cncf.txt) instead of .rds and run details.",
    )
    p.add_argument(
        "-fl",
        "--facets-lib-path",
        required=True,
        help="Path to the facets R library. Pass '' to use the version available to library(facets).",
    )

    p.add_argument("--rscript-path", default="Rscript", help="Rscript executable [default %(default)s].")
    p.add_argument("--log-file", default=None, help="Also write the log to this file.")
    p.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        counts_file=args.counts_file,
        sample_id=args.sample_id or default_sample_id(args.counts_file),
        directory=args.directory,
        facets_lib_path=args.facets_lib_path,
        everything=bool(args.everything),
        genome=args.genome,
        cval=int(args.cval),
        purity_cval=args.purity_cval,
        min_nhet=int(args.min_nhet),
        purity_min_nhet=int(args.purity_min_nhet),
        snp_window_size=int(args.snp_window_size),
        normal_depth=int(args.normal_depth),
        dip_log_r=args.dip_log_r,
        seed=int(args.seed),
        legacy_output=bool(args.legacy_output),
        rscript_path=args.rscript_path,
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_path = Path(args.log_file).expanduser().resolve() if args.log_file else None
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("facetsrunner")
    logger.info("facetsrunner %s", __version__)

    try:
        config = config_from_args(args)
        check_counts_file(config.counts_file)

        if args.dry_run:
            mode = "two-pass (purity + hisens)" if config.two_pass else "single-pass"
            print(f"Dry-run: inputs look OK. Sample {config.sample_id}, {mode}.")
            print("Planned outputs:")
            for path in planned_outputs(config):
                print(f"  {path}")
            return 0

        with FacetsEngine(facets_lib_path=config.facets_lib_path, rscript=config.rscript_path) as engine:
            run = run_pipeline(config, engine)

        logger.info("Finished %d pass(es) for %s", len(run.results), config.sample_id)
        print(str(Path(config.directory).resolve()))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


if __name__ == "__main__":
    raise SystemExit(main())
