"""Tree view page: drag-and-drop reordering of a stored tree.

Rows are rendered as one flat column indented by depth. Updates follow the
``TreeView`` diffs published by the controller: rows are created, deleted,
restyled and moved in place with ``element.move()``; the column is never
cleared and rebuilt.

Drag events use native HTML5 drag-and-drop. ``dragover`` is throttled and
its ``js_handler`` emits the pointer position plus the target's bounding box,
which is all the drag session needs to classify the drop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nicegui import background_tasks, ui
from sqlalchemy.exc import SQLAlchemyError

from arborist.config import get_settings
from arborist.tree import (
    END_ZONE,
    InMemoryTreeQuery,
    MovesRejectedError,
    NodeRecord,
    Point,
    Rect,
    TreeController,
)

if TYPE_CHECKING:
    from nicegui import Client
    from nicegui.events import GenericEventArguments

    from arborist.tree import DropIndicator, Hover, TreeQuery, TreeView, ViewDiff
    from arborist.tree.builder import ViewRow
    from arborist.tree.types import NodeId

logger = logging.getLogger(__name__)

# Emits pointer x/y and the current target's viewport box.
_BOUNDS_JS = (
    "(event) => { const r = event.currentTarget.getBoundingClientRect();"
    " emit(event.clientX, event.clientY, r.left, r.top, r.width, r.height); }"
)
_INDENT_REM = 1.5

_demo_query: InMemoryTreeQuery | None = None


def _demo_records() -> list[NodeRecord]:
    names = {
        1: (None, 1, "Documents"),
        2: (1, 1, "Invoices"),
        3: (1, 2, "Receipts"),
        4: (2, 1, "2025"),
        5: (2, 2, "2026"),
        6: (None, 2, "Pictures"),
        7: (6, 1, "Holidays"),
        8: (None, 3, "Music"),
    }
    return [
        NodeRecord(node_id, parent, order, {"name": name})
        for node_id, (parent, order, name) in names.items()
    ]


def get_demo_query() -> InMemoryTreeQuery:
    """Process-wide in-memory tree used when no database is configured."""
    global _demo_query  # noqa: PLW0603
    if _demo_query is None:
        _demo_query = InMemoryTreeQuery(_demo_records())
    return _demo_query


def build_query(tree_key: str) -> TreeQuery:
    settings = get_settings()
    if not settings.database.url:
        return get_demo_query()

    from arborist.db import Node, SqlTreeQuery  # noqa: PLC0415

    return SqlTreeQuery.from_config(settings.tree, where=[Node.tree_key == tree_key])


def _css(declarations: dict[str, str]) -> str:
    return "; ".join(f"{key}: {value}" for key, value in declarations.items())


class _RowWidget:
    """The elements making up one rendered node."""

    __slots__ = ("label", "row", "toggle")

    def __init__(self, row: ui.row, toggle: ui.button, label: ui.label) -> None:
        self.row = row
        self.toggle = toggle
        self.label = label


class TreeRenderer:
    """Applies controller view diffs to NiceGUI elements for one client."""

    def __init__(
        self,
        controller: TreeController,
        container: ui.column,
        indicator: ui.element,
    ) -> None:
        self.controller = controller
        self.container = container
        self.indicator = indicator
        self._rows: dict[NodeId, _RowWidget] = {}
        self._order: list[NodeId] = []
        self.hide_indicator()

    def apply(self, view: TreeView, diff: ViewDiff) -> None:
        for node_id in diff.removed:
            widget = self._rows.pop(node_id)
            self._order.remove(node_id)
            widget.row.delete()
        for node_id in diff.added:
            row = view.row(node_id)
            assert row is not None
            self._rows[node_id] = self._create_row(row)
            self._order.append(node_id)
        for node_id in diff.changed:
            row = view.row(node_id)
            assert row is not None
            self._update_row(self._rows[node_id], row)

        if diff.added or diff.reordered:
            self._reposition(view.ids)
        logger.debug(
            "Applied view diff: +%d -%d ~%d reordered=%s",
            len(diff.added),
            len(diff.removed),
            len(diff.changed),
            diff.reordered,
        )

    def _reposition(self, target: tuple[NodeId, ...]) -> None:
        for index, node_id in enumerate(target):
            if self._order[index] == node_id:
                continue
            self._rows[node_id].row.move(
                target_container=self.container, target_index=index
            )
            self._order.remove(node_id)
            self._order.insert(index, node_id)

    def _create_row(self, view_row: ViewRow) -> _RowWidget:
        node_id = view_row.id
        with self.container:
            with ui.row().classes("arborist-row items-center no-wrap") as row:
                toggle = ui.button(
                    icon="expand_more",
                    on_click=lambda: self.controller.toggle(node_id),
                ).props("flat dense round size=sm")
                ui.icon("drag_indicator").classes("arborist-handle").tooltip(
                    "Drag to reorder"
                )
                label = ui.label()
        row.props(f'draggable data-node-id="{node_id}"')

        row.on("dragstart", lambda: self._on_dragstart(node_id))
        row.on(
            "dragover.prevent",
            lambda e: self._on_dragover(node_id, e),
            throttle=0.05,
            js_handler=_BOUNDS_JS,
        )
        row.on("dragleave", lambda: self._on_dragleave(node_id))
        row.on("drop.prevent", self.on_drop)
        row.on("dragend", self.on_dragend)

        widget = _RowWidget(row, toggle, label)
        self._update_row(widget, view_row)
        return widget

    def _update_row(self, widget: _RowWidget, view_row: ViewRow) -> None:
        widget.row.style(
            replace=f"padding-left: {view_row.depth * _INDENT_REM}rem"
        )
        widget.row.set_visibility(view_row.visible)
        widget.label.set_text(str(view_row.fields.get("name", view_row.id)))
        widget.toggle.set_visibility(view_row.has_children)
        icon = "expand_more" if view_row.expanded else "chevron_right"
        widget.toggle.props(f"icon={icon}")

    # -- drag events ------------------------------------------------------

    def _on_dragstart(self, node_id: NodeId) -> None:
        if self.controller.session.is_dragging:
            self.controller.cancel_drag()
        self.controller.start_drag(node_id)

    def _on_dragover(self, node_id: NodeId, e: GenericEventArguments) -> None:
        if not self.controller.session.is_dragging:
            return
        x, y, left, top, width, height = e.args
        hover = self.controller.hover_target(
            node_id, Point(x, y), Rect(left, top, width, height)
        )
        self.show_indicator(hover)

    def _on_dragleave(self, node_id: NodeId) -> None:
        self.controller.leave(node_id)
        if self.controller.session.hover_state is None:
            self.hide_indicator()

    def on_end_zone_dragover(self, e: GenericEventArguments) -> None:
        if not self.controller.session.is_dragging:
            return
        _x, _y, left, top, width, height = e.args
        self.show_indicator(
            self.controller.hover_end_zone(Rect(left, top, width, height))
        )

    def on_end_zone_dragleave(self) -> None:
        self.controller.leave(END_ZONE)
        self.hide_indicator()

    def on_drop(self) -> None:
        self.hide_indicator()
        intent = self.controller.drop()
        if intent is not None:
            logger.info("Drop: %s", intent)

    def on_dragend(self) -> None:
        self.hide_indicator()
        self.controller.cancel_drag()

    # -- indicator ----------------------------------------------------------

    def show_indicator(self, hover: Hover | None) -> None:
        indicator: DropIndicator | None = hover.indicator if hover else None
        if indicator is None:
            self.hide_indicator()
            return
        self.indicator.style(replace=_css(indicator.style()))
        self.indicator.set_visibility(True)

    def hide_indicator(self) -> None:
        self.indicator.set_visibility(False)


@ui.page("/")
async def tree_page(client: Client, tree: str = "default") -> None:
    """Render one tree, selected by the ``tree`` query parameter."""
    settings = get_settings()
    ui.add_head_html('<link rel="stylesheet" href="/static/arborist.css">')
    ui.page_title(settings.app.title)

    controller = TreeController.from_config(build_query(tree), settings.tree)

    with ui.column().classes("arborist-page w-full max-w-3xl mx-auto") as page:
        with ui.row().classes("items-center w-full"):
            ui.label(settings.app.title).classes("text-h5")
            ui.space()
            unsaved = ui.label("Unsaved changes").classes("arborist-unsaved")
            ui.button("Expand all", on_click=controller.expand_all).props("flat")
            ui.button("Collapse all", on_click=controller.collapse_all).props("flat")

        empty = ui.label("No records found").classes("text-grey-7")
        rows = ui.column().classes("arborist-tree w-full gap-0")
        end_zone = ui.element("div").classes("arborist-end-zone w-full")
        indicator = ui.element("div").classes("arborist-indicator")

        with ui.row().classes("w-full justify-end") as actions:
            save_btn = ui.button("Save changes", icon="save")
            cancel_btn = ui.button("Cancel").props("flat")

    renderer = TreeRenderer(controller, rows, indicator)

    def on_view(view: TreeView, diff: ViewDiff) -> None:
        renderer.apply(view, diff)
        empty.set_visibility(not view.rows)

    def on_dirty(dirty: bool) -> None:
        save_btn.set_enabled(dirty)
        cancel_btn.set_enabled(dirty)
        unsaved.set_visibility(dirty)

    def on_error(exc: BaseException) -> None:
        with page:
            ui.notify(f"Could not save the tree: {exc}", type="negative")

    async def save() -> None:
        try:
            count = await controller.save()
        except (SQLAlchemyError, MovesRejectedError) as exc:
            logger.exception("Saving queued moves failed")
            ui.notify(f"Could not save the tree: {exc}", type="negative")
            return
        if count:
            ui.notify(f"Saved {count} change(s)", type="positive")

    async def cancel() -> None:
        await controller.cancel()

    controller.on_view(on_view)
    controller.on_dirty_change(on_dirty)
    controller.on_error(on_error)

    save_btn.on_click(save)
    cancel_btn.on_click(cancel)
    actions.set_visibility(controller.is_batched)
    on_dirty(False)

    end_zone.on(
        "dragover.prevent",
        renderer.on_end_zone_dragover,
        throttle=0.05,
        js_handler=_BOUNDS_JS,
    )
    end_zone.on("dragleave", renderer.on_end_zone_dragleave)
    end_zone.on("drop.prevent", renderer.on_drop)

    client.on_disconnect(
        lambda: background_tasks.create(controller.close(), name="tree-close")
    )

    await controller.load()
    empty.set_visibility(not controller.view.rows)
