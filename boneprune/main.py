import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from boneprune.assets.glb_loader import GLBLoader
from boneprune.assets.glb_writer import GLBWriter
from boneprune.assets.mesh_asset import MeshAssetStore
from boneprune.config import PrunerConfig, load_config
from boneprune.errors import BonePruneError
from boneprune.skinning.hierarchy import format_forest
from boneprune.skinning.pruner import BonePruner

logger = logging.getLogger("boneprune")


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="[%(name)s] %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="boneprune",
        description="Remove bones from a skinned .glb model and move their weights to the nearest kept parent",
    )
    parser.add_argument("input", help="Input model (.glb)")
    parser.add_argument("-o", "--output", help="Output path (default: <input>_pruned.glb)")
    parser.add_argument(
        "-d", "--delete", action="append", default=[], metavar="NAME",
        help="Bone to delete together with everything below it (repeatable)",
    )
    parser.add_argument("--list", action="store_true", help="Print the bone tree and bone count")
    parser.add_argument("--save-folder", help="Folder for pruned mesh assets (default: next to input)")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--no-copy", action="store_true", help="Edit the loaded model instead of a copy")
    parser.add_argument("--preview", action="store_true", help="Show the bone overlay before pruning")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    return parser


def default_output(input_path: str) -> str:
    path = Path(input_path)
    return str(path.with_name(f"{path.stem}_pruned.glb"))


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config(args.config) if args.config else PrunerConfig()
    config = config.updated(
        save_folder=args.save_folder,
        log_level=args.log_level,
        duplicate=False if args.no_copy else None,
    )
    configure_logging(config.log_level)

    try:
        loaded = GLBLoader(args.input).load_model()
        save_folder = config.save_folder or str(Path(args.input).resolve().parent)
        pruner = BonePruner(loaded.root, config, MeshAssetStore(save_folder))

        for name in args.delete:
            pruner.mark(name)

        if args.list:
            print(format_forest(pruner.forest))
            print(f"BoneCount: {pruner.bone_count}")

        if args.preview:
            from boneprune.viewer import run_preview

            run_preview(pruner.forest, title=Path(args.input).name)

        if not args.delete:
            return 0

        result = pruner.delete_bones()
        GLBWriter(loaded.gltf, result.model).write(args.output or default_output(args.input))
        print(f"BoneCount: {pruner.bone_count}")

    except KeyError as e:
        logger.error(e.args[0])
        return 1
    except (BonePruneError, ValueError, RuntimeError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
