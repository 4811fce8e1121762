from __future__ import annotations

import argparse
import sys
from pathlib import Path


def main() -> int:
    # Allow running from a repo checkout without requiring an editable install.
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"
    if src_root.exists():
        sys.path.insert(0, str(src_root))

    from mesa_loader import __version__
    from mesa_loader.bundle import (
        MESA_VERSION,
        BundleError,
        build_bundles,
        download_archives,
        extract_archives,
        stage_natives,
    )

    ap = argparse.ArgumentParser(description="Download Mesa builds and assemble mesa-loader bundles.")
    ap.add_argument("--mesa-version", default=MESA_VERSION)
    ap.add_argument("--loader-version", default=None, help="Version written to version.properties.")
    ap.add_argument("--work-dir", default=str(repo_root / "build" / "download"))
    ap.add_argument("--out-dir", default=str(repo_root / "build" / "bundles"))
    ap.add_argument("--seven-zip", default=None, help="Path to 7z/7zz (defaults to PATH lookup).")
    ap.add_argument(
        "--stage-package",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Also copy the binaries into src/mesa_loader/natives for wheel builds.",
    )
    args = ap.parse_args()

    loader_version = args.loader_version or f"{args.mesa_version}-SNAPSHOT"
    work_dir = Path(args.work_dir).expanduser() / f"mesa-{args.mesa_version}"

    try:
        download_archives(work_dir, mesa_version=args.mesa_version)
        extract_archives(
            work_dir,
            mesa_version=args.mesa_version,
            seven_zip=Path(args.seven_zip) if args.seven_zip else None,
        )
        build_bundles(work_dir, Path(args.out_dir), loader_version=loader_version, mesa_version=args.mesa_version)
        if args.stage_package:
            dest = stage_natives(
                work_dir,
                src_root / "mesa_loader" / "natives",
                loader_version=loader_version,
                mesa_version=args.mesa_version,
            )
            print(f"[bundle] Staged package data in {dest}")
    except BundleError as e:
        print(f"[bundle] error: {e}", file=sys.stderr)
        return 1

    print(f"[bundle] Done (mesa-loader {__version__}, Mesa {args.mesa_version})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
