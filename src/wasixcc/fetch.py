"""Acquisition of sysroots and toolchains from GitHub releases."""

from __future__ import annotations

import json
import os
import platform
import shutil
import stat
import tarfile
import tempfile
import warnings
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.error import URLError
from urllib.request import Request, urlopen

from wasixcc.config import EffectiveConfig
from wasixcc.errors import AcquisitionFailedError, InvalidOptionValueError
from wasixcc.models import ResourceKind
from wasixcc.observability import StructuredLogger

GITHUB_API = "https://api.github.com"
USER_AGENT = "wasixcc"

SYSROOT_REPO = "wasix-org/wasix-libc"
LLVM_REPO = "wasix-org/llvm-project"
BINARYEN_REPO = "WebAssembly/binaryen"

SYSROOT_ASSETS = ("sysroot.tar.gz", "sysroot-eh.tar.gz", "sysroot-ehpic.tar.gz")
SYSROOT_ARCHIVE_DIR = "wasix-sysroot"

LLVM_ASSETS = {
    ("linux", "x86_64"): "LLVM-Linux-x86_64.tar.gz",
    ("linux", "aarch64"): "LLVM-Linux-aarch64.tar.gz",
    ("darwin", "x86_64"): "LLVM-MacOS-x86_64.tar.gz",
    ("darwin", "aarch64"): "LLVM-MacOS-aarch64.tar.gz",
}

BINARYEN_ASSET_SUFFIXES = {
    ("linux", "x86_64"): "-x86_64-linux.tar.gz",
    ("linux", "aarch64"): "-aarch64-linux.tar.gz",
    ("darwin", "x86_64"): "-x86_64-macos.tar.gz",
    ("darwin", "aarch64"): "-arm64-macos.tar.gz",
}

MACHINE_ALIASES = {"amd64": "x86_64", "arm64": "aarch64"}

CHUNK_SIZE = 1 << 16


class IgnoredOptionWarning(UserWarning):
    """Warning raised when a configured option has no effect on an operation."""


@dataclass(frozen=True, slots=True)
class TagSpec:
    """Release selector: ``None`` means the latest release."""

    tag: str | None = None

    @classmethod
    def parse(cls, value: str) -> TagSpec:
        value = value.strip()
        if value == "latest":
            return cls()
        if value.startswith(("v", "version_")):
            return cls(value)
        raise InvalidOptionValueError(
            f"Invalid tag specification: {value!r}",
            hint="Use 'latest', a tag starting with 'v', or 'version_XXX'.",
            context={"tag": value},
        )

    @property
    def url_postfix(self) -> str:
        return "latest" if self.tag is None else f"tags/{self.tag}"

    def __str__(self) -> str:
        return self.tag or "latest"


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    name: str
    url: str


def host_platform() -> tuple[str, str]:
    machine = platform.machine().lower()
    return platform.system().lower(), MACHINE_ALIASES.get(machine, machine)


class GithubReleaseFetcher:
    """Downloads release assets and installs them where the resolver looks.

    Sysroot archives unpack to ``wasix-sysroot<postfix>/sysroot`` and are
    moved to ``SYSROOT_PREFIX/sysroot<postfix>``. LLVM archives unpack
    directly into ``LLVM_LOCATION``. Binaryen archives unpack to
    ``binaryen-version_<N>/`` whose contents move into ``BINARYEN_LOCATION``.
    """

    def __init__(
        self,
        config: EffectiveConfig,
        *,
        environ: Mapping[str, str] | None = None,
        api_url: str = GITHUB_API,
        host: tuple[str, str] | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.config = config
        self.environ = os.environ if environ is None else environ
        self.api_url = api_url.rstrip("/")
        self.host = host or host_platform()
        self.logger = logger

    def acquire(self, kind: ResourceKind, tag: str) -> Path:
        spec = TagSpec.parse(tag)
        if kind is ResourceKind.PLATFORM_ROOT:
            return self.download_sysroot(spec)
        if kind is ResourceKind.TOOLCHAIN:
            return self.download_llvm(spec)
        return self.download_binaryen(spec)

    def download_sysroot(self, spec: TagSpec) -> Path:
        if self.config.is_set("SYSROOT"):
            warnings.warn(
                "SYSROOT is ignored when downloading sysroot; "
                "archives are installed under SYSROOT_PREFIX.",
                IgnoredOptionWarning,
                stacklevel=2,
            )
        prefix = self._location("SYSROOT_PREFIX")
        assets = self.release_assets(SYSROOT_REPO, spec)
        for name in SYSROOT_ASSETS:
            asset = _find_asset(assets, name, repo=SYSROOT_REPO, spec=spec)
            with tempfile.TemporaryDirectory(prefix="wasixcc-sysroot-") as scratch:
                unpacked = Path(scratch) / "unpacked"
                self._download_and_unpack(asset, unpacked)
                final_dir = _install_sysroot(unpacked, prefix, asset=asset)
            self._log("download", f"installed {asset.name}", {"path": str(final_dir)})
        return prefix

    def download_llvm(self, spec: TagSpec) -> Path:
        asset_name = _host_asset(LLVM_ASSETS, self.host, resource="LLVM")
        target_dir = self._location("LLVM_LOCATION")
        assets = self.release_assets(LLVM_REPO, spec)
        asset = _find_asset(assets, asset_name, repo=LLVM_REPO, spec=spec)
        self._download_and_unpack(asset, target_dir)
        _make_executable(target_dir / "bin")
        self._log("download", f"installed {asset.name}", {"path": str(target_dir)})
        return target_dir

    def download_binaryen(self, spec: TagSpec) -> Path:
        suffix = _host_asset(BINARYEN_ASSET_SUFFIXES, self.host, resource="binaryen")
        target_dir = self._location("BINARYEN_LOCATION")
        assets = self.release_assets(BINARYEN_REPO, spec)
        matching = [asset for asset in assets if asset.name.endswith(suffix)]
        if not matching:
            raise AcquisitionFailedError(
                "Could not find a binaryen asset for this platform",
                context={"repo": BINARYEN_REPO, "tag": str(spec), "suffix": suffix},
            )
        asset = matching[0]
        self._download_and_unpack(asset, target_dir)

        version_dir = target_dir / asset.name[: -len(suffix)]
        try:
            for entry in version_dir.iterdir():
                destination = target_dir / entry.name
                if destination.is_dir() and not destination.is_symlink():
                    shutil.rmtree(destination)
                elif destination.exists() or destination.is_symlink():
                    destination.unlink()
                shutil.move(str(entry), destination)
            version_dir.rmdir()
        except OSError as exc:
            raise AcquisitionFailedError(
                "Failed to rearrange the binaryen installation",
                context={"path": str(version_dir), "error": str(exc)},
            ) from exc
        _make_executable(target_dir / "bin")
        self._log("download", f"installed {asset.name}", {"path": str(target_dir)})
        return target_dir

    def release_assets(self, repo: str, spec: TagSpec) -> list[ReleaseAsset]:
        url = f"{self.api_url}/repos/{repo}/releases/{spec.url_postfix}"
        self._log("release", f"retrieving release info from {url}")
        try:
            with urlopen(self._request(url)) as response:  # noqa: S310 - fixed GitHub API host
                payload = json.load(response)
        except (URLError, OSError, ValueError) as exc:
            raise AcquisitionFailedError(
                "Could not download release info",
                hint="Set GITHUB_TOKEN if the GitHub API is rate limiting this host.",
                context={"url": url, "error": str(exc)},
            ) from exc
        return [
            ReleaseAsset(name=asset["name"], url=asset["browser_download_url"])
            for asset in payload.get("assets", [])
        ]

    def _download_and_unpack(self, asset: ReleaseAsset, target_dir: Path) -> None:
        self._log("download", f"downloading {asset.name}", {"url": asset.url})
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(prefix="wasixcc-download-") as scratch:
                archive = Path(scratch) / asset.name
                with urlopen(self._request(asset.url)) as response, archive.open("wb") as out:  # noqa: S310
                    chunk = response.read(CHUNK_SIZE)
                    while chunk:
                        out.write(chunk)
                        chunk = response.read(CHUNK_SIZE)
                with tarfile.open(archive, "r:*") as tar:
                    tar.extractall(target_dir, filter="data")
        except (URLError, OSError, tarfile.TarError) as exc:
            raise AcquisitionFailedError(
                f"Failed to download and unpack asset {asset.name!r}",
                context={"url": asset.url, "target": str(target_dir), "error": str(exc)},
            ) from exc

    def _request(self, url: str) -> Request:
        headers = {"User-Agent": USER_AGENT}
        token = self.environ.get("GITHUB_TOKEN", "").strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return Request(url, headers=headers)

    def _location(self, key: str) -> Path:
        location = self.config.path(key)
        if location is None:
            raise InvalidOptionValueError(
                f"{key} must not be empty",
                context={"key": key, "source": self.config.source(key).value},
            )
        return location.absolute()

    def _log(self, phase: str, message: str, extra: dict[str, object] | None = None) -> None:
        if self.logger is not None:
            self.logger.log(
                operation="acquire",
                persona=None,
                phase=phase,
                message=message,
                extra=extra,
            )


def _find_asset(assets: list[ReleaseAsset], name: str, *, repo: str, spec: TagSpec) -> ReleaseAsset:
    for asset in assets:
        if asset.name == name:
            return asset
    raise AcquisitionFailedError(
        f"Could not find asset {name!r} in release",
        context={"repo": repo, "tag": str(spec)},
    )


def _host_asset(table: Mapping[tuple[str, str], str], host: tuple[str, str], *, resource: str) -> str:
    asset = table.get(host)
    if asset is None:
        system, machine = host
        raise AcquisitionFailedError(
            f"{resource} download for {system} on {machine} is not supported",
            context={"system": system, "machine": machine},
        )
    return asset


def _install_sysroot(unpacked: Path, prefix: Path, *, asset: ReleaseAsset) -> Path:
    entries = sorted(unpacked.iterdir())
    if len(entries) != 1 or not entries[0].name.startswith(SYSROOT_ARCHIVE_DIR):
        raise AcquisitionFailedError(
            f"Unexpected layout in sysroot asset {asset.name!r}",
            hint=f"Expected a single '{SYSROOT_ARCHIVE_DIR}*' directory.",
            context={"entries": ", ".join(entry.name for entry in entries)},
        )
    postfix = entries[0].name[len(SYSROOT_ARCHIVE_DIR) :]
    final_dir = prefix / f"sysroot{postfix}"
    try:
        prefix.mkdir(parents=True, exist_ok=True)
        if final_dir.exists():
            shutil.rmtree(final_dir)
        shutil.move(str(entries[0] / "sysroot"), final_dir)
    except OSError as exc:
        raise AcquisitionFailedError(
            f"Failed to install sysroot asset {asset.name!r}",
            context={"target": str(final_dir), "error": str(exc)},
        ) from exc
    return final_dir


def _make_executable(bin_dir: Path) -> None:
    if not bin_dir.is_dir():
        raise AcquisitionFailedError(
            "Unpacked asset has no bin directory",
            context={"path": str(bin_dir)},
        )
    for entry in bin_dir.iterdir():
        if entry.is_file() and not entry.is_symlink():
            mode = entry.stat().st_mode
            entry.chmod(mode | stat.S_IXUSR | stat.S_IXGRP)
