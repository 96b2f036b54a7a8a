"""Command-line interface for Consensus-Refinery.

Provides CLI commands for single clustering runs and consensus building.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import click

from consensus_refinery import __version__


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("consensus_refinery")


@click.group()
@click.version_option(version=__version__, prog_name="consensus-refinery")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--log-file", type=click.Path(), default=None,
              help="Also write a timestamped run log (INFO and above) to this file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, log_file: Optional[str]) -> None:
    """Consensus-Refinery: clustering orchestration and consensus.

    Runs a single configurable clustering (optionally with subsampling and
    a sequential search over k) and combines many clusterings into one.

    Examples:

        # Cluster a samples x features matrix
        consensus-refinery cluster --input x.csv --config cluster.yaml --out run1/

        # Combine clusterings (samples x clusterings CSV)
        consensus-refinery consensus --input clusterings.csv --proportion 0.7 --out cons/

        # List built-in cluster functions
        consensus-refinery functions
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_logging(verbose, debug)
    if log_file:
        from consensus_refinery.io import get_logger

        _, path = get_logger("consensus_refinery", log_file,
                             level=logging.DEBUG if debug else logging.INFO)
        ctx.obj["log_file"] = path


@cli.command()
@click.option("--input", "-i", "input_path", type=click.Path(exists=True),
              help="Feature matrix CSV (samples x features, first column sample ids)")
@click.option("--diss", "diss_path", type=click.Path(exists=True),
              help="Dissimilarity matrix CSV (samples x samples)")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Clustering configuration file (YAML)")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--label", default=None, help="Override cluster_label from the config")
@click.pass_context
def cluster(
    ctx: click.Context,
    input_path: Optional[str],
    diss_path: Optional[str],
    config: Optional[str],
    output_path: str,
    label: Optional[str],
) -> None:
    """Run a single clustering.

    Writes labels.csv, cluster_info.yaml, and co_clustering.csv when the
    run subsampled without a sequential search.
    """
    logger = ctx.obj["logger"]

    # Import here to avoid slow startup
    from dataclasses import replace

    from consensus_refinery.core.clustering import ClusterSingleConfig, cluster_single
    from consensus_refinery.core.validation import ConsensusRefineryError
    from consensus_refinery.io import (
        ensure_output_dir,
        load_dissimilarity,
        load_matrix,
        log_json,
        write_dataframe,
        write_yaml,
    )

    if input_path is None and diss_path is None:
        raise click.UsageError("Give --input and/or --diss")

    cfg = ClusterSingleConfig.from_yaml(Path(config)) if config else ClusterSingleConfig.default()
    if label:
        cfg = replace(cfg, cluster_label=label)

    x = load_matrix(input_path) if input_path else None
    diss = load_dissimilarity(diss_path) if diss_path else None

    try:
        result = cluster_single(x=x, diss=diss, config=cfg, logger=logger)
    except ConsensusRefineryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    out_dir = ensure_output_dir(output_path)
    labels_file = write_dataframe(result.to_series().to_frame(), out_dir / "labels.csv", index=True)
    write_yaml(out_dir / "cluster_info.yaml", result.cluster_info)
    if result.co_clustering is not None:
        write_dataframe(
            _square_frame(result.co_clustering, result.sample_names),
            out_dir / "co_clustering.csv",
            index=True,
        )
    log_json(out_dir / "runs.jsonl", {
        "command": "cluster",
        "time": datetime.now().isoformat(timespec="seconds"),
        "input": input_path,
        "diss": diss_path,
        "cluster_label": cfg.cluster_label,
        "n_clusters": result.n_clusters,
        "cluster_sizes": result.cluster_sizes,
    })

    click.echo(f"Clustering complete: {result.n_clusters} clusters")
    click.echo(f"Output saved to: {labels_file}")


@cli.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Clusterings CSV (samples x clusterings, first column sample ids)")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Consensus configuration file (YAML); options below override it")
@click.option("--proportion", "-p", type=float, default=None,
              help="Fraction of clusterings samples must share (1 = exact agreement)")
@click.option("--min-size", type=int, default=None, help="Minimum consensus cluster size")
@click.option("--prop-unassigned", type=float, default=None,
              help="Maximum fraction of -1 labels tolerated per sample")
@click.option("--cluster-function", default=None, help="ZeroOne cluster function name")
@click.option("--columns", multiple=True, help="Clusterings to combine (repeatable)")
@click.pass_context
def consensus(
    ctx: click.Context,
    input_path: str,
    output_path: str,
    config: Optional[str],
    proportion: Optional[float],
    min_size: Optional[int],
    prop_unassigned: Optional[float],
    cluster_function: Optional[str],
    columns: Tuple[str, ...],
) -> None:
    """Build a consensus clustering.

    Writes consensus.csv (clustering and no_unassigned_correction) and
    percentage_shared.csv when proportion < 1.
    """
    logger = ctx.obj["logger"]

    from dataclasses import replace

    from consensus_refinery.core.consensus import ConsensusBuilder, ConsensusConfig
    from consensus_refinery.core.validation import ConsensusRefineryError
    from consensus_refinery.io import (
        ensure_output_dir,
        load_cluster_matrix,
        log_json,
        write_dataframe,
    )

    cfg = ConsensusConfig.from_yaml(Path(config)) if config else ConsensusConfig.default()
    overrides = {
        "proportion": proportion,
        "min_size": min_size,
        "prop_unassigned": prop_unassigned,
        "cluster_function": cluster_function,
    }
    cfg = replace(cfg, **{k: v for k, v in overrides.items() if v is not None})

    cluster_matrix = load_cluster_matrix(input_path, columns=list(columns) or None)

    try:
        result = ConsensusBuilder(cfg, logger=logger).build(cluster_matrix)
    except ConsensusRefineryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    out_dir = ensure_output_dir(output_path)
    output_file = write_dataframe(result.to_frame(), out_dir / "consensus.csv", index=True)
    shared = result.shared_frame()
    if shared is not None:
        write_dataframe(shared, out_dir / "percentage_shared.csv", index=True)
    log_json(out_dir / "runs.jsonl", {
        "command": "consensus",
        "time": datetime.now().isoformat(timespec="seconds"),
        "input": input_path,
        "columns": list(cluster_matrix.columns),
        "config": cfg.to_dict(),
        "n_clusters": result.n_clusters,
        "n_unassigned": int((result.clustering == -1).sum()),
    })

    click.echo(f"Consensus complete: {result.n_clusters} clusters")
    click.echo(f"Output saved to: {output_file}")


@cli.command()
def functions() -> None:
    """List built-in cluster functions."""
    from consensus_refinery.core.functions import get_cluster_function, list_builtin_functions

    for name in list_builtin_functions():
        fn = get_cluster_function(name)
        click.echo(
            f"{name:<16} type={fn.algorithm_type.value:<3} input={fn.input_type.value:<6} "
            f"required={','.join(fn.required_args) or '-'}"
        )


def _square_frame(matrix, names):
    import pandas as pd

    return pd.DataFrame(matrix, index=names, columns=names)


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
