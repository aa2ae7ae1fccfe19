"""``wasixccenv``: manage sysroots, toolchains and wrapper executables.

Usage:
    wasixccenv [-sKEY=VALUE ...] install-executables PATH
    wasixccenv [-sKEY=VALUE ...] download-sysroot [TAG]
    wasixccenv [-sKEY=VALUE ...] download-llvm [TAG]
    wasixccenv [-sKEY=VALUE ...] download-binaryen [TAG]
    wasixccenv [-sKEY=VALUE ...] install-all [--sysroot-tag TAG] [--llvm-tag TAG] PATH
    wasixccenv [-sKEY=VALUE ...] print-sysroot
    wasixccenv version
    wasixccenv help-config
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Mapping, Sequence

from wasixcc import __version__, engine
from wasixcc.config import EffectiveConfig, render_help
from wasixcc.errors import WasixccError
from wasixcc.fetch import GithubReleaseFetcher, TagSpec
from wasixcc.install import install_executables
from wasixcc.models import ToolPersona
from wasixcc.observability import StructuredLogger, configure_logging
from wasixcc.profile import resolve_profile
from wasixcc.sysroot import SysrootResolver


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wasixccenv",
        description="Manage the WASIX sysroot, LLVM toolchain and wrapper executables.",
        epilog="Settings may be given as -sKEY=VALUE before the command.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    install_p = sub.add_parser("install-executables", help="Install wasix<cmd> links into PATH")
    install_p.add_argument("path", help="Directory to place the links in")

    for name, what in (
        ("download-sysroot", "the sysroot"),
        ("download-llvm", "the LLVM toolchain"),
        ("download-binaryen", "binaryen (wasm-opt)"),
    ):
        download_p = sub.add_parser(name, help=f"Download {what}")
        download_p.add_argument("tag", nargs="?", help="'latest', 'v*' or 'version_*'")

    all_p = sub.add_parser("install-all", help="Download everything and install the links")
    all_p.add_argument("--sysroot-tag", help="Sysroot release tag")
    all_p.add_argument("--llvm-tag", help="LLVM release tag")
    all_p.add_argument("--binaryen-tag", help="Binaryen release tag")
    all_p.add_argument("path", help="Directory to place the links in")

    sub.add_parser("print-sysroot", help="Print the sysroot the current settings select")
    sub.add_parser("version", help="Print the version")
    sub.add_parser("help-config", help="List configuration options")
    return parser


def main(
    argv: Sequence[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        config, rest = engine.load_config(argv, environ)
        configure_logging(config.string("LOG_LEVEL"))
        args = build_parser().parse_args(rest)
        return _dispatch(args, config, environ)
    except WasixccError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_status


def _dispatch(
    args: argparse.Namespace,
    config: EffectiveConfig,
    environ: Mapping[str, str] | None,
) -> int:
    if args.command == "version":
        print(f"wasixcc {__version__}")
        return 0
    if args.command == "help-config":
        print(render_help())
        return 0
    if args.command == "print-sysroot":
        profile = resolve_profile(config, ToolPersona.C_COMPILER, [])
        print(SysrootResolver(config).platform_root_location(profile))
        return 0

    fetcher = GithubReleaseFetcher(config, environ=environ, logger=StructuredLogger())
    default_tag = config.string("DOWNLOAD_TAG") or "latest"

    if args.command == "download-sysroot":
        path = fetcher.download_sysroot(TagSpec.parse(args.tag or default_tag))
    elif args.command == "download-llvm":
        path = fetcher.download_llvm(TagSpec.parse(args.tag or default_tag))
    elif args.command == "download-binaryen":
        path = fetcher.download_binaryen(TagSpec.parse(args.tag or default_tag))
    elif args.command == "install-executables":
        links = install_executables(args.path)
        print(f"Installed {len(links)} executables into {args.path}")
        return 0
    else:
        fetcher.download_sysroot(TagSpec.parse(args.sysroot_tag or default_tag))
        fetcher.download_llvm(TagSpec.parse(args.llvm_tag or default_tag))
        fetcher.download_binaryen(TagSpec.parse(args.binaryen_tag or default_tag))
        links = install_executables(args.path)
        print(f"Installed {len(links)} executables into {args.path}")
        return 0

    print(f"Installed into {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
