"""Command-line entry point for the merge_alignments package."""

from merge_alignments.cli import main as _workflow_main


def main() -> None:
    """Execute the merge_alignments command-line interface."""

    _workflow_main()


if __name__ == "__main__":  # pragma: no cover - entry point
    main()
