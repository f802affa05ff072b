"""
Download scopes and their expansion into ordered download requests.

Both `expand_scope` and `plan_downloads` are pure: they decide what would be
downloaded, in what order, without touching the network or the file system.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from switchdl.core.identity import is_dlc_id
from switchdl.exceptions import InvalidArgumentError
from switchdl.models.title import VERSION_STRIDE, CollectionItem, Game, Title, Update

if TYPE_CHECKING:
    from switchdl.core.collection import CollectionIndex


class DownloadScope(str, Enum):
    BASE_ONLY = "base"
    UPDATE_ONLY = "update"
    ALL_DLC = "dlc"
    BASE_AND_UPDATE = "base+update"
    BASE_AND_DLC = "base+dlc"
    UPDATE_AND_DLC = "update+dlc"
    BASE_AND_UPDATE_AND_DLC = "all"


class DownloadStep(str, Enum):
    BASE = "base"
    UPDATES = "updates"
    DLC = "dlc"


SCOPE_EXPANSION: dict[DownloadScope, tuple[DownloadStep, ...]] = {
    DownloadScope.BASE_ONLY: (DownloadStep.BASE,),
    DownloadScope.UPDATE_ONLY: (DownloadStep.UPDATES,),
    DownloadScope.ALL_DLC: (DownloadStep.DLC,),
    DownloadScope.BASE_AND_UPDATE: (DownloadStep.BASE, DownloadStep.UPDATES),
    DownloadScope.BASE_AND_DLC: (DownloadStep.BASE, DownloadStep.DLC),
    DownloadScope.UPDATE_AND_DLC: (DownloadStep.UPDATES, DownloadStep.DLC),
    DownloadScope.BASE_AND_UPDATE_AND_DLC: (
        DownloadStep.BASE,
        DownloadStep.UPDATES,
        DownloadStep.DLC,
    ),
}


@dataclass
class DownloadRequest:
    """A single artifact to fetch: one title at one version."""

    title: Title
    version: int
    step: DownloadStep
    item: CollectionItem | None = None

    def __str__(self):
        return f"{self.step.value} {self.title} v{self.version}"


def expand_scope(scope: DownloadScope) -> tuple[DownloadStep, ...]:
    """Returns the ordered steps a scope is made of."""
    return SCOPE_EXPANSION[DownloadScope(scope)]


def update_versions(version: int) -> list[int]:
    """
    Versions fetched for an update request at `version`: `version`,
    `version - stride`, ... down to (excluding) 0.
    """
    if version < 0 or version % VERSION_STRIDE:
        raise InvalidArgumentError(
            f"Update version {version} is not a multiple of {VERSION_STRIDE}."
        )
    return list(range(version, 0, -VERSION_STRIDE))


def plan_downloads(
    index: "CollectionIndex",
    item: CollectionItem,
    version: int,
    scope: DownloadScope,
) -> list[DownloadRequest]:
    """Expands a scope for one collection item into concrete requests."""
    title = item.title
    requests: list[DownloadRequest] = []

    for step in expand_scope(scope):
        if step is DownloadStep.BASE:
            requests.append(DownloadRequest(title, 0, step, item))

        elif step is DownloadStep.UPDATES:
            versions = update_versions(version)
            if versions and not isinstance(title, (Game, Update)):
                raise InvalidArgumentError(
                    f"{title} has no updates; it is not a game or an update."
                )
            for v in versions:
                requests.append(
                    DownloadRequest(title.get_update_title(v), v, step, None)
                )

        elif step is DownloadStep.DLC:
            if is_dlc_id(title.title_id):
                requests.append(DownloadRequest(title, 0, step, item))
            elif isinstance(title, Game):
                for dlc in title.dlc:
                    dlc_item = index.lookup(dlc.title_id)
                    dlc_title = dlc_item.title if dlc_item else dlc
                    requests.append(DownloadRequest(dlc_title, 0, step, dlc_item))

    return requests
