# merge.py
# Description: Timestamp-based reconciliation of pulled notebooks against the local set
#
# Imports
from dataclasses import dataclass, field
from typing import Iterable, List
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from ..Notes.models import Notebook
#
#######################################################################################################################
#
# Classes and Functions:

@dataclass
class MergeResult:
    """Outcome of merging remote notebooks into the local collection."""
    notebooks: List[Notebook] = field(default_factory=list)
    adopted: List[str] = field(default_factory=list)    # remote-only, added locally
    replaced: List[str] = field(default_factory=list)   # remote strictly newer, overwrote local
    kept: List[str] = field(default_factory=list)       # local same age or newer, remote ignored

    @property
    def changed(self) -> List[Notebook]:
        """Notebooks that have to be written to the local store."""
        ids = set(self.adopted) | set(self.replaced)
        return [nb for nb in self.notebooks if nb.id in ids]


def remote_wins(local: Notebook, remote: Notebook) -> bool:
    """Remote replaces local only when it is strictly newer; ties keep local."""
    return remote.updated_at > local.updated_at


def merge_remote_notebooks(local: Iterable[Notebook], remote: Iterable[Notebook]) -> MergeResult:
    """
    Merge `remote` into `local` without touching the inputs.

    Whole notebooks are replaced, never individual fields. Local notebooks
    with no remote counterpart pass through unchanged; nothing is deleted.
    Local order is preserved and adopted notebooks are appended in remote
    order. Each remote entry is applied against the merged set built so far,
    so a duplicated remote id is resolved by the same rule.
    """
    result = MergeResult(notebooks=list(local))
    index_by_id = {nb.id: i for i, nb in enumerate(result.notebooks)}

    for remote_nb in remote:
        i = index_by_id.get(remote_nb.id)
        if i is None:
            index_by_id[remote_nb.id] = len(result.notebooks)
            result.notebooks.append(remote_nb)
            result.adopted.append(remote_nb.id)
            logger.debug(f"Adopting remote notebook {remote_nb.id}")
        elif remote_wins(result.notebooks[i], remote_nb):
            result.notebooks[i] = remote_nb
            if remote_nb.id not in result.adopted and remote_nb.id not in result.replaced:
                result.replaced.append(remote_nb.id)
            logger.debug(f"Remote notebook {remote_nb.id} is newer, replacing local copy")
        else:
            if remote_nb.id not in result.kept:
                result.kept.append(remote_nb.id)

    # An id first kept and later replaced by a newer duplicate counts as replaced.
    result.kept = [nb_id for nb_id in result.kept if nb_id not in result.replaced and nb_id not in result.adopted]
    logger.info(
        f"Merge: {len(result.adopted)} adopted, {len(result.replaced)} replaced, {len(result.kept)} kept local"
    )
    return result

#
# End of merge.py
#######################################################################################################################
