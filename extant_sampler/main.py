"""Pipeline driver and command-line interface for extant_sampler."""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .exceptions import SamplerError, TreeIOError
from .flat import FlatTree
from .pruning import prune_to_deepest
from .tree import assign_depths, depths_to_lengths, parse_newick, serialize, zero_root_length


LOGGER = logging.getLogger("extant_sampler")

OUTPUT_FILENAME = "extant_species_tree.nwk"


@dataclass
class SampleResult:
    """Pruned Newick text with the kept (deepest first) and removed leaf names."""

    newick: str
    sampled_names: List[str]
    removed_names: List[str]


def configure_logging(log_file: Optional[str] = None, level: int = logging.INFO) -> None:
    """Configure logging for console and optionally a file."""
    LOGGER.setLevel(level)
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    # Clear existing handlers
    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    LOGGER.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        LOGGER.addHandler(file_handler)


def sample_species_tree(newick_text: str, nb_leaves: int) -> SampleResult:
    """Keep the ``nb_leaves`` deepest leaves of a Newick tree.

    Branch lengths of the pruned tree are rederived from the depths computed on
    the input tree, relative to the depth of the node that ends up on top.
    """
    node_tree = parse_newick(newick_text)
    zero_root_length(node_tree)
    assign_depths(node_tree, 0.0)

    flat_tree = FlatTree.from_node(node_tree)
    pruned = prune_to_deepest(flat_tree, nb_leaves)
    LOGGER.info("保留 %d 个叶节点，移除 %d 个叶节点。", len(pruned.sampled), len(pruned.removed))

    reconstructed_tree = flat_tree.to_node()
    depths_to_lengths(reconstructed_tree, reconstructed_tree.depth)

    return SampleResult(
        newick=serialize(reconstructed_tree),
        sampled_names=[flat_tree[index].name for index in pruned.sampled],
        removed_names=[flat_tree[index].name for index in pruned.removed],
    )


def species_tree_sample_to_file(
    species_tree_path: str, output_dir: str, nb_leaves: int
) -> SampleResult:
    """Sample the tree stored at ``species_tree_path`` and write it to ``output_dir``.

    Raises:
        TreeIOError: the input cannot be read or the output cannot be written.
        GrammarError, StructureError: the input is not a usable tree.
    """
    output_path = Path(output_dir)
    try:
        output_path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise TreeIOError(f"cannot create output directory: {exc}", str(output_path)) from exc

    LOGGER.info("读取 Newick 树: %s", species_tree_path)
    try:
        newick_text = Path(species_tree_path).read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as exc:
        raise TreeIOError(f"cannot read species tree: {exc}", species_tree_path) from exc

    result = sample_species_tree(newick_text, nb_leaves)

    species_file = output_path / OUTPUT_FILENAME
    try:
        species_file.write_text(result.newick, encoding="utf-8")
    except OSError as exc:
        raise TreeIOError(f"cannot write sampled tree: {exc}", str(species_file)) from exc
    LOGGER.info("采样后的树已保存到: %s", species_file)
    return result


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"n_extant_nodes must be an integer. Received: {value}"
        ) from None
    if number < 0:
        raise argparse.ArgumentTypeError(
            f"n_extant_nodes must be non-negative. Received: {value}"
        )
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="extant_sampler",
        description=(
            "Keep the n most recent (deepest) leaves of a species tree. If the tree "
            "has n extant species, this yields the extant species tree."
        ),
    )
    parser.add_argument("species_tree_path", help="Input Newick species tree file.")
    parser.add_argument(
        "n_extant_nodes",
        type=_non_negative_int,
        help="Number of deepest leaves to keep.",
    )
    parser.add_argument(
        "output_dir",
        help=f"Directory that receives {OUTPUT_FILENAME}; created if missing.",
    )
    parser.add_argument(
        "--log-file",
        required=False,
        help="Optional path for a detailed execution log file.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug messages from every pipeline stage.",
    )
    return parser


def run(args: argparse.Namespace) -> int:
    """Run one sampling job; return the process exit status."""
    configure_logging(args.log_file, logging.DEBUG if args.verbose else logging.INFO)
    LOGGER.info("启动物种树采样流程 ...")
    LOGGER.info("输入参数: %s", args)

    try:
        result = species_tree_sample_to_file(
            args.species_tree_path, args.output_dir, args.n_extant_nodes
        )
    except SamplerError as exc:
        LOGGER.error("物种树采样过程中发生错误: %s", exc)
        LOGGER.error("物种树路径: %s", args.species_tree_path)
        LOGGER.error("采样叶节点数: %s", args.n_extant_nodes)
        LOGGER.error("输出目录: %s", args.output_dir)
        return 1

    print(f"Sampled Leaves: {result.sampled_names}")
    print(f"Removed Leaves: {result.removed_names}")
    LOGGER.info("流程完成。")
    return 0


def cli_entry(argv: Optional[Sequence[str]] = None) -> None:
    """Entry point for console_scripts."""
    arguments = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    try:
        args = parser.parse_args(arguments)
    except SystemExit as exc:
        if exc.code:
            print(f"Received arguments: {arguments}", file=sys.stderr)
        raise
    status = run(args)
    if status:
        raise SystemExit(status)


__all__ = [
    "OUTPUT_FILENAME",
    "SampleResult",
    "build_parser",
    "cli_entry",
    "configure_logging",
    "sample_species_tree",
    "species_tree_sample_to_file",
]
