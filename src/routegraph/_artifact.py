"""Route graph for locating and downloading a distribution artifact.

The graph mirrors how an embedded-binary launcher finds its executable:

    Version -> Distribution -> DistributionPackage --+--> downloadUrl --+
    downloadPath ------------------------------------+                  |
    artifactStore -----------------------------------+--> artifactPath -+--> downloadedArtifactPath

``artifactStore`` is a temporary directory that is deleted when the
resolution owning it is closed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ._distribution import BitSize, Distribution, DistributionPackage, Platform, Version, package_of
from ._download import DEFAULT_USER_AGENT, TimeoutConfig, download_url, use_or_download
from ._key import key_of
from ._routes import RouteGraph
from ._rule import Rule
from ._try import adapt_failures
from ._workspace import create_workspace

if TYPE_CHECKING:
    from ._download import DownloadListener

DEFAULT_VERSION = "2.1.1"
DEFAULT_DOWNLOAD_PATH = "https://bitbucket.org/ariya/phantomjs/downloads/"

VERSION = key_of(Version)
DISTRIBUTION = key_of(Distribution)
PACKAGE = key_of(DistributionPackage)
DOWNLOAD_PATH = key_of(str, "downloadPath")
DOWNLOAD_URL = key_of(str, "downloadUrl")
ARTIFACT_STORE = key_of(Path, "artifactStore")
ARTIFACT_PATH = key_of(Path, "artifactPath")
DOWNLOADED_ARTIFACT_PATH = key_of(Path, "downloadedArtifactPath")


@dataclass(frozen=True, slots=True)
class ArtifactSettings:
    """Inputs of the artifact route graph."""

    version: str = DEFAULT_VERSION
    download_path: str = DEFAULT_DOWNLOAD_PATH
    user_agent: str = DEFAULT_USER_AGENT
    timeout_config: TimeoutConfig = field(default_factory=TimeoutConfig.defaults)
    platform: Platform | None = None
    bit_size: BitSize | None = None


def artifact_routes(
    settings: ArtifactSettings | None = None,
    listener: DownloadListener | None = None,
) -> RouteGraph:
    """Build the route graph resolving ``DOWNLOADED_ARTIFACT_PATH``.

    Args:
        settings: Version, download location and network settings.
        listener: Progress listener for downloads.

    """
    settings = settings or ArtifactSettings()

    def version() -> Version:
        return Version.of(settings.version)

    def download_path() -> str:
        return settings.download_path

    def distribution_of(version: Version) -> Distribution:
        return Distribution.detect_for(version, platform=settings.platform, bit_size=settings.bit_size)

    def artifact_path(store: Path, package: DistributionPackage) -> Path:
        return store / package.archive_path

    @adapt_failures(OSError)
    def downloaded_artifact(path: Path, url: str) -> Path:
        return use_or_download(
            path,
            url,
            user_agent=settings.user_agent,
            timeout_config=settings.timeout_config,
            listener=listener,
        )

    return (
        RouteGraph.builder()
        .add(Rule.start(VERSION, version))
        .add(Rule.start(ARTIFACT_STORE, create_workspace))
        .add(Rule.start(DOWNLOAD_PATH, download_path))
        .add(Rule.bridge(VERSION, DISTRIBUTION, distribution_of))
        .add(Rule.bridge(DISTRIBUTION, PACKAGE, package_of))
        .add(Rule.merge(DOWNLOAD_PATH, PACKAGE, DOWNLOAD_URL, download_url))
        .add(Rule.merge(ARTIFACT_STORE, PACKAGE, ARTIFACT_PATH, artifact_path))
        .add(Rule.merge(ARTIFACT_PATH, DOWNLOAD_URL, DOWNLOADED_ARTIFACT_PATH, downloaded_artifact))
        .build()
    )
