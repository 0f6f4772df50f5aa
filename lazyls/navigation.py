"""Modal navigation state machine for the directory browser.

``NavigationController`` owns ``NavState`` and is driven by logical commands.
Every (mode, command) pair is routed through the explicit ``TRANSITIONS``
table; pairs with nothing to do map to ``"noop"``. The controller talks to
``DirectoryModel`` for listings, to a preview scheduler for file snippets and
to an opener callback for external launches. It has no terminal concerns.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Protocol

from .launcher import open_externally
from .listing import Entry, Listing, ListingUpdate, next_sort, sort_label
from .model import DirectoryModel

logger = logging.getLogger(__name__)

Mode = Literal["normal", "preview", "search"]
MODES: tuple[Mode, ...] = ("normal", "preview", "search")

STATUS_MESSAGE_SECONDS = 3.0


@dataclass(frozen=True)
class MoveUp:
    pass


@dataclass(frozen=True)
class MoveDown:
    pass


@dataclass(frozen=True)
class MoveTop:
    pass


@dataclass(frozen=True)
class MoveBottom:
    pass


@dataclass(frozen=True)
class Descend:
    pass


@dataclass(frozen=True)
class Ascend:
    pass


@dataclass(frozen=True)
class ToggleMode:
    target: Mode


@dataclass(frozen=True)
class OpenExternally:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class FilterChar:
    char: str


@dataclass(frozen=True)
class Backspace:
    pass


@dataclass(frozen=True)
class CycleSort:
    pass


@dataclass(frozen=True)
class ToggleHidden:
    pass


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class RequestSize:
    pass


Command = (
    MoveUp
    | MoveDown
    | MoveTop
    | MoveBottom
    | Descend
    | Ascend
    | ToggleMode
    | OpenExternally
    | Quit
    | FilterChar
    | Backspace
    | CycleSort
    | ToggleHidden
    | Refresh
    | RequestSize
)

COMMAND_TYPES: tuple[type, ...] = (
    MoveUp,
    MoveDown,
    MoveTop,
    MoveBottom,
    Descend,
    Ascend,
    ToggleMode,
    OpenExternally,
    Quit,
    FilterChar,
    Backspace,
    CycleSort,
    ToggleHidden,
    Refresh,
    RequestSize,
)


class CommandSource(Protocol):
    """Input capability: decode the next logical command for ``mode``."""

    def read_command(self, mode: Mode, timeout_seconds: float) -> Command | None: ...


class PreviewScheduler(Protocol):
    """Asynchronous preview capability used by the controller."""

    def schedule(self, target: Path) -> int: ...

    def cancel(self) -> None: ...

    def drain_results(self) -> list: ...


_NAVIGATION = {
    MoveUp: "move_up",
    MoveDown: "move_down",
    MoveTop: "move_top",
    MoveBottom: "move_bottom",
}

TRANSITIONS: dict[tuple[Mode, type], str] = {
    **{("normal", command): action for command, action in _NAVIGATION.items()},
    ("normal", Descend): "descend",
    ("normal", Ascend): "ascend",
    ("normal", ToggleMode): "toggle_mode",
    ("normal", OpenExternally): "open_externally",
    ("normal", Quit): "quit",
    ("normal", FilterChar): "noop",
    ("normal", Backspace): "noop",
    ("normal", CycleSort): "cycle_sort",
    ("normal", ToggleHidden): "toggle_hidden",
    ("normal", Refresh): "refresh",
    ("normal", RequestSize): "request_size",
    **{("preview", command): f"preview_{action}" for command, action in _NAVIGATION.items()},
    ("preview", Descend): "descend",
    ("preview", Ascend): "leave_preview",
    ("preview", ToggleMode): "toggle_mode",
    ("preview", OpenExternally): "open_externally",
    ("preview", Quit): "quit",
    ("preview", FilterChar): "noop",
    ("preview", Backspace): "noop",
    ("preview", CycleSort): "noop",
    ("preview", ToggleHidden): "noop",
    ("preview", Refresh): "noop",
    ("preview", RequestSize): "request_size",
    **{("search", command): action for command, action in _NAVIGATION.items()},
    ("search", Descend): "descend",
    ("search", Ascend): "noop",
    ("search", ToggleMode): "toggle_mode",
    ("search", OpenExternally): "noop",
    ("search", Quit): "quit",
    ("search", FilterChar): "filter_char",
    ("search", Backspace): "backspace",
    ("search", CycleSort): "noop",
    ("search", ToggleHidden): "noop",
    ("search", Refresh): "noop",
    ("search", RequestSize): "noop",
}


@dataclass
class NavState:
    current_path: Path
    cursor_index: int = 0
    mode: Mode = "normal"
    history_stack: list[Path] = field(default_factory=list)
    search_query: str = ""
    cursor_memory: dict[Path, str] = field(default_factory=dict)
    list_start: int = 0
    status_message: str = ""
    status_message_until: float = 0.0
    listing: Listing | None = None
    last_version: int = 0
    preview_path: Path | None = None
    preview_request_id: int | None = None
    preview_lines: list[str] = field(default_factory=list)
    preview_loading: bool = False
    show_hidden: bool = False
    dirty: bool = True
    quit: bool = False


def filter_entries(entries: Iterable[Entry], query: str) -> list[Entry]:
    """Case-insensitive substring filter used for the search projection."""
    if not query:
        return list(entries)
    folded = query.casefold()
    return [entry for entry in entries if folded in entry.name.casefold()]


class NavigationController:
    """Apply commands to ``NavState`` and consume model updates."""

    def __init__(
        self,
        model: DirectoryModel,
        preview: PreviewScheduler,
        *,
        opener: Callable[[Path], str | None] = open_externally,
        on_show_hidden_changed: Callable[[bool], None] | None = None,
        on_sort_changed: Callable[[str], None] | None = None,
    ) -> None:
        self.model = model
        self.preview = preview
        self._opener = opener
        self._on_show_hidden_changed = on_show_hidden_changed
        self._on_sort_changed = on_sort_changed
        self.state: NavState | None = None

    def start(self, path: Path) -> NavState:
        """Open the initial directory; ``OSError`` propagates to the caller."""
        listing = self.model.open(path)
        self.state = NavState(current_path=listing.path, show_hidden=self.model.show_hidden)
        self._adopt_listing(listing, anchor=None)
        return self.state

    # projection
    def visible_entries(self) -> list[Entry]:
        state = self._require_state()
        if state.listing is None:
            return []
        return filter_entries(state.listing.entries, state.search_query)

    def selected_entry(self) -> Entry | None:
        entries = self.visible_entries()
        index = self._require_state().cursor_index
        if 0 <= index < len(entries):
            return entries[index]
        return None

    def _require_state(self) -> NavState:
        if self.state is None:
            raise RuntimeError("navigation not started")
        return self.state

    def _adopt_listing(self, listing: Listing, anchor: str | None, fallback_index: int = 0) -> None:
        state = self._require_state()
        state.listing = listing
        state.last_version = listing.version
        entries = self.visible_entries()
        index = fallback_index
        if anchor is not None:
            for idx, entry in enumerate(entries):
                if entry.name == anchor:
                    index = idx
                    break
        state.cursor_index = max(0, min(index, len(entries) - 1)) if entries else 0
        state.dirty = True

    def set_status(self, message: str, seconds: float = STATUS_MESSAGE_SECONDS) -> None:
        state = self._require_state()
        state.status_message = message
        state.status_message_until = time.monotonic() + seconds
        state.dirty = True

    # dispatch
    def handle(self, command: Command) -> bool:
        """Apply ``command`` in the current mode; return ``True`` to quit."""
        state = self._require_state()
        action = TRANSITIONS[(state.mode, type(command))]
        if action != "noop":
            getattr(self, f"_{action}")(command)
        return state.quit

    def _quit(self, _command: Command) -> None:
        self._require_state().quit = True

    def _move_cursor(self, index: int) -> bool:
        state = self._require_state()
        count = len(self.visible_entries())
        target = max(0, min(index, count - 1)) if count else 0
        if target == state.cursor_index:
            return False
        state.cursor_index = target
        state.dirty = True
        return True

    def _move_up(self, _command: Command) -> None:
        self._move_cursor(self._require_state().cursor_index - 1)

    def _move_down(self, _command: Command) -> None:
        self._move_cursor(self._require_state().cursor_index + 1)

    def _move_top(self, _command: Command) -> None:
        self._move_cursor(0)

    def _move_bottom(self, _command: Command) -> None:
        self._move_cursor(len(self.visible_entries()) - 1)

    def _preview_move_up(self, command: Command) -> None:
        self._move_up(command)
        self._preview_selected()

    def _preview_move_down(self, command: Command) -> None:
        self._move_down(command)
        self._preview_selected()

    def _preview_move_top(self, command: Command) -> None:
        self._move_top(command)
        self._preview_selected()

    def _preview_move_bottom(self, command: Command) -> None:
        self._move_bottom(command)
        self._preview_selected()

    # directory changes
    def _change_directory(self, target: Path, anchor: str | None, *, push_history: bool) -> bool:
        state = self._require_state()
        try:
            listing = self.model.open(target)
        except OSError as exc:
            reason = exc.strerror or str(exc)
            self.set_status(f"Cannot open {target.name or target}: {reason}")
            logger.info("open %s failed: %s", target, reason)
            return False

        previous = state.current_path
        selected = self.selected_entry()
        if selected is not None:
            state.cursor_memory[previous] = selected.name
        if listing.path != previous:
            self.model.close(previous)
            if push_history:
                state.history_stack.append(previous)
        state.current_path = listing.path
        state.search_query = ""
        self._discard_preview()
        state.mode = "normal"
        self._adopt_listing(listing, anchor=anchor)
        return True

    def _descend(self, _command: Command) -> None:
        state = self._require_state()
        entry = self.selected_entry()
        if entry is None:
            return
        target = state.current_path / entry.name
        if entry.is_dir or (entry.kind == "symlink" and target.is_dir()):
            resolved = target.resolve()
            self._change_directory(target, state.cursor_memory.get(resolved), push_history=True)
            return
        if state.mode == "search":
            self._clear_search()
        self._enter_preview()

    def _ascend(self, _command: Command) -> None:
        state = self._require_state()
        current = state.current_path
        if state.history_stack:
            target = state.history_stack[-1]
            anchor = state.cursor_memory.get(target, current.name)
            if self._change_directory(target, anchor, push_history=False):
                state.history_stack.pop()
            return
        parent = current.parent
        if parent == current:
            return
        self._change_directory(parent, current.name, push_history=False)

    # modes
    def _toggle_mode(self, command: ToggleMode) -> None:
        state = self._require_state()
        target = command.target
        if target == state.mode:
            target = "normal"
        if state.mode == "preview" and target != "preview":
            self._discard_preview()
        if state.mode == "search" and target != "search":
            self._clear_search()
        if target == "preview":
            self._enter_preview()
            return
        state.mode = target
        state.dirty = True

    def _leave_preview(self, _command: Command) -> None:
        self._discard_preview()
        state = self._require_state()
        state.mode = "normal"
        state.dirty = True

    def _enter_preview(self) -> None:
        state = self._require_state()
        if self.selected_entry() is None:
            self.set_status("Nothing to preview")
            return
        state.mode = "preview"
        self._preview_selected()

    def _preview_selected(self) -> None:
        state = self._require_state()
        entry = self.selected_entry()
        if entry is None:
            self._discard_preview()
            return
        target = state.current_path / entry.name
        if state.preview_path == target and state.preview_request_id is not None:
            return
        state.preview_path = target
        state.preview_lines = []
        state.preview_loading = True
        state.preview_request_id = self.preview.schedule(target)
        state.dirty = True

    def _discard_preview(self) -> None:
        state = self._require_state()
        if state.preview_request_id is not None:
            self.preview.cancel()
        state.preview_path = None
        state.preview_request_id = None
        state.preview_lines = []
        state.preview_loading = False
        state.dirty = True

    def poll_preview(self) -> bool:
        """Adopt the finished preview for the latest request, if any."""
        state = self._require_state()
        changed = False
        for result in self.preview.drain_results():
            if state.mode != "preview" or result.request_id != state.preview_request_id:
                continue
            state.preview_lines = list(result.lines)
            state.preview_loading = False
            state.dirty = True
            changed = True
        return changed

    # search
    def _clear_search(self) -> None:
        state = self._require_state()
        selected = self.selected_entry()
        state.search_query = ""
        if state.listing is not None:
            self._adopt_listing(state.listing, anchor=selected.name if selected else None)

    def _filter_char(self, command: FilterChar) -> None:
        state = self._require_state()
        if not command.char:
            return
        selected = self.selected_entry()
        state.search_query += command.char
        if state.listing is not None:
            self._adopt_listing(state.listing, anchor=selected.name if selected else None)

    def _backspace(self, _command: Command) -> None:
        state = self._require_state()
        if not state.search_query:
            return
        selected = self.selected_entry()
        state.search_query = state.search_query[:-1]
        if state.listing is not None:
            self._adopt_listing(state.listing, anchor=selected.name if selected else None)

    # model requests
    def _open_externally(self, _command: Command) -> None:
        state = self._require_state()
        entry = self.selected_entry()
        if entry is None:
            return
        error = self._opener(state.current_path / entry.name)
        self.set_status(error if error else f"Opened {entry.name}")

    def _request_size(self, _command: Command) -> None:
        state = self._require_state()
        entry = self.selected_entry()
        if entry is None:
            return
        if not entry.is_dir:
            self.set_status(f"{entry.name} is not a directory")
            return
        self.model.request_size(state.current_path, entry.name)

    def _cycle_sort(self, _command: Command) -> None:
        state = self._require_state()
        if state.listing is None:
            return
        sort_by = next_sort(state.listing.sort_by)
        selected = self.selected_entry()
        listing = self.model.set_sort(state.current_path, sort_by)
        if listing is None:
            return
        self._adopt_listing(listing, anchor=selected.name if selected else None)
        if self._on_sort_changed is not None:
            self._on_sort_changed(sort_by)
        self.set_status(f"Sort: {sort_label(sort_by)}")

    def _reload(self, anchor: str | None) -> bool:
        state = self._require_state()
        try:
            listing = self.model.refresh(state.current_path)
        except OSError as exc:
            self.set_status(f"Cannot reload {state.current_path}: {exc.strerror or exc}")
            return False
        self._adopt_listing(listing, anchor=anchor, fallback_index=state.cursor_index)
        return True

    def _toggle_hidden(self, _command: Command) -> None:
        state = self._require_state()
        selected = self.selected_entry()
        state.show_hidden = not state.show_hidden
        self.model.set_show_hidden(state.show_hidden)
        if self._reload(selected.name if selected else None) and self._on_show_hidden_changed is not None:
            self._on_show_hidden_changed(state.show_hidden)

    def _refresh(self, _command: Command) -> None:
        selected = self.selected_entry()
        self._reload(selected.name if selected else None)

    # model updates
    def apply_updates(self, updates: Iterable[ListingUpdate]) -> bool:
        """Fold published updates for the current path into the view.

        Updates for other paths or with a version already rendered are
        ignored. Returns whether the visible listing changed.
        """
        state = self._require_state()
        newest = state.last_version
        for update in updates:
            if update.path != state.current_path or update.version <= state.last_version:
                continue
            newest = max(newest, update.version)
        if newest == state.last_version:
            return False
        listing = self.model.listing(state.current_path)
        if listing is None:
            return False
        selected = self.selected_entry()
        self._adopt_listing(
            listing,
            anchor=selected.name if selected else None,
            fallback_index=state.cursor_index,
        )
        if state.mode == "preview":
            self._preview_selected()
        return True

    def expire_status(self, now: float | None = None) -> None:
        state = self._require_state()
        if not state.status_message:
            return
        if now is None:
            now = time.monotonic()
        if now >= state.status_message_until:
            state.status_message = ""
            state.status_message_until = 0.0
            state.dirty = True


__all__ = [
    "Ascend",
    "Backspace",
    "COMMAND_TYPES",
    "Command",
    "CommandSource",
    "CycleSort",
    "Descend",
    "FilterChar",
    "MODES",
    "Mode",
    "MoveBottom",
    "MoveDown",
    "MoveTop",
    "MoveUp",
    "NavState",
    "NavigationController",
    "OpenExternally",
    "PreviewScheduler",
    "Quit",
    "RequestSize",
    "Refresh",
    "TRANSITIONS",
    "ToggleHidden",
    "ToggleMode",
    "filter_entries",
]
