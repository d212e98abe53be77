"""Copying of Kubernetes object labels onto metric labels."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping

from .metrics import LABEL_LABELS


def _stored_labels(labels: Iterable[str]) -> dict[str, str]:
    # Entries may be "newName=oldName" to store a label under another name.
    stored: dict[str, str] = {}
    for entry in labels:
        new_name, sep, old_name = entry.partition("=")
        if sep:
            stored[old_name] = new_name
        else:
            stored[new_name] = new_name
    return stored


class LabelCopier:
    """Maps object labels to metric labels."""

    def __init__(self, separator: str, stored_labels: Iterable[str], ignored_labels: Iterable[str]) -> None:
        self.separator = separator
        self.stored_labels = _stored_labels(stored_labels)
        self.ignored_labels = frozenset(ignored_labels)

    def copy(self, labels: Mapping[str, str], out: MutableMapping[str, str]) -> None:
        """Copy ``labels`` into ``out``.

        All labels not ignored are joined as sorted ``key:value`` pairs under the
        labels key; stored labels are additionally copied under their mapped name.
        """
        joined = []
        for key, value in labels.items():
            mapped = self.stored_labels.get(key)
            if mapped is not None:
                out[mapped] = value
            if key not in self.ignored_labels:
                joined.append(f"{key}:{value}")
        out[LABEL_LABELS] = self.separator.join(sorted(joined))