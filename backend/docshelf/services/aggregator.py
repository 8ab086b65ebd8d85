import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from loguru import logger

from ..datasources.base import HostingSource, Release
from ..exceptions import GitHubError
from ..models import (
    LINK_VERSION_LABEL,
    UNKNOWN_SIZE,
    DirectLinkDocument,
    DirectLinkSource,
    Document,
    RepoReleaseDocument,
    RepoReleaseSource,
    Source,
    format_size,
)

NO_DOCUMENTS_NOTICE = "No documents were found in the added sources."


@dataclass
class AggregationResult:
    documents: List[Document] = field(default_factory=list)
    failed_sources: List[int] = field(default_factory=list)
    notice: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.documents


def release_documents(source: RepoReleaseSource, release: Release, extension: str = ".pdf") -> List[RepoReleaseDocument]:
    extension = extension.lower()
    return [
        RepoReleaseDocument(
            unique_key=f"gh-{source.id}-{asset.id}",
            display_name=asset.name,
            download_url=asset.browser_download_url,
            size_label=format_size(asset.size),
            published_at=asset.created_at,
            version_label=release.tag_name,
            origin_label=source.full_name,
            owner=source.owner,
            repo_name=source.repo_name,
            release_url=release.html_url,
        )
        for asset in release.assets
        if asset.name.lower().endswith(extension)
    ]


def link_document(source: DirectLinkSource) -> DirectLinkDocument:
    return DirectLinkDocument(
        unique_key=f"link-{source.id}",
        display_name=source.display_name,
        download_url=source.url,
        size_label=UNKNOWN_SIZE,
        published_at=source.added_at,
        version_label=LINK_VERSION_LABEL,
        origin_label=source.host,
    )


class AggregationFetcher:
    """Turn the registered sources into one catalog, newest first.

    Repository sources are resolved concurrently against their latest
    release; link sources need no network. A source whose fetch fails in any
    way contributes nothing and is reported in ``failed_sources``; it never
    fails the run.
    """

    def __init__(self, source: HostingSource, target_extension: str = ".pdf"):
        self.source = source
        self.target_extension = target_extension

    async def _fetch_repo(self, repo: RepoReleaseSource) -> Optional[List[RepoReleaseDocument]]:
        try:
            release = await self.source.get_latest_release(repo.owner, repo.repo_name)
        except (GitHubError, httpx.HTTPError) as exc:
            logger.warning(f"[catalog] skipping {repo.full_name}: {exc}")
            return None
        except Exception as exc:
            # any failure only drops this source
            logger.exception(f"[catalog] unexpected failure for {repo.full_name}: {exc!r}")
            return None
        docs = release_documents(repo, release, self.target_extension)
        logger.debug(f"[catalog] {repo.full_name} {release.tag_name}: {len(docs)} matching assets")
        return docs

    async def aggregate(self, sources: List[Source]) -> AggregationResult:
        repos = [s for s in sources if isinstance(s, RepoReleaseSource)]
        links = [s for s in sources if isinstance(s, DirectLinkSource)]

        logger.info(f"[catalog] aggregating {len(repos)} repo sources and {len(links)} links")
        fetched = await asyncio.gather(*(self._fetch_repo(repo) for repo in repos))

        documents: List[Document] = []
        failed: List[int] = []
        for repo, docs in zip(repos, fetched):
            if docs is None:
                failed.append(repo.id)
            else:
                documents.extend(docs)
        documents.extend(link_document(link) for link in links)
        documents.sort(key=lambda doc: doc.published_at, reverse=True)

        notice = NO_DOCUMENTS_NOTICE if not documents and sources else None
        logger.info(f"[catalog] aggregation done: {len(documents)} documents, {len(failed)} failed sources")
        return AggregationResult(documents=documents, failed_sources=failed, notice=notice)
