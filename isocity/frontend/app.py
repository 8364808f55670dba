"""Tkinter GUI for IsoCity Studio.

Thin desktop front end over ``Studio`` (``studio.py``). The major classes:

  * ``ControlPanel`` (left sidebar): grid cell size and offset sliders,
    grid opacity, the show-numbers toggle, the layer list (visibility and
    opacity per layer), the action buttons (clear selection, undo, reset,
    export, import) and the stats readout.
  * ``ZonePanel`` (right sidebar): searchable tree of groups and zones.
    Clicking a zone assigns the selected cells to it (or, with nothing
    selected, highlights an already-assigned zone); right-click unassigns.
  * ``App`` (the window): the map canvas, the status bar, and the event
    wiring. Every handler calls into ``Studio`` and then ``_render``.

Rendering goes through ``SceneRenderer`` at 2x supersampling and is shown
as a ``PhotoImage`` filling the canvas. Pointer events are mapped back to
cells with the same fit transform via ``Studio.cell_at_pixel``.

Run with ``python -m isocity.frontend.app [PROJECT_DIR]``; without an
argument the bundled sample project is opened.
"""

import argparse
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from PIL import ImageTk

from .project_io import load_project, sample_project_path
from .session_io import load_session, save_session_json, save_session_png
from .studio import Studio

# -- Visual constants --

CANVAS_BG = "#0f0f1a"
PANEL_BG = "#1a1a2e"
SUPERSAMPLE = 2
MIN_CANVAS = 20
EXPORT_FRAME_SIZE = (1400, 1000)


# ---------------------------------------------------------------------------
# Tooltip helper
# ---------------------------------------------------------------------------


class Tooltip:
    """Lightweight hover tooltip for any tkinter widget."""

    _DELAY_MS = 400

    def __init__(self, widget, text):
        self.widget = widget
        self.text = text
        self._tip_window = None
        self._after_id = None
        widget.bind("<Enter>", self._schedule, add="+")
        widget.bind("<Leave>", self._cancel, add="+")

    def _schedule(self, _event=None):
        self._cancel()
        self._after_id = self.widget.after(self._DELAY_MS, self._show)

    def _cancel(self, _event=None):
        if self._after_id:
            self.widget.after_cancel(self._after_id)
            self._after_id = None
        self._hide()

    def _show(self):
        if self._tip_window:
            return
        x = self.widget.winfo_rootx() + self.widget.winfo_width() + 4
        y = self.widget.winfo_rooty()
        tw = tk.Toplevel(self.widget)
        tw.wm_overrideredirect(True)
        tw.wm_geometry(f"+{x}+{y}")
        tk.Label(
            tw,
            text=self.text,
            background="#ffffe0",
            foreground="#000000",
            relief="solid",
            borderwidth=1,
            padx=4,
            pady=2,
            wraplength=300,
        ).pack()
        self._tip_window = tw

    def _hide(self):
        if self._tip_window:
            self._tip_window.destroy()
            self._tip_window = None


# ---------------------------------------------------------------------------
# Control panel
# ---------------------------------------------------------------------------


class ControlPanel(ttk.Frame):
    """Sidebar with grid, layer and action controls."""

    def __init__(self, parent, studio, on_changed, actions):
        super().__init__(parent, padding=10)
        self.studio = studio
        self.on_changed = on_changed
        self.actions = actions

        params = studio.grid.params
        self.cell_w_var = tk.DoubleVar(value=params.cell_w)
        self.cell_h_var = tk.DoubleVar(value=params.cell_h)
        self.off_x_var = tk.DoubleVar(value=params.off_x)
        self.off_y_var = tk.DoubleVar(value=params.off_y)
        self.opacity_var = tk.DoubleVar(value=studio.view.grid_opacity)
        self.numbers_var = tk.BooleanVar(value=studio.view.show_numbers)

        self.stats_label = None
        self._syncing = False
        self._build()

    def _build(self):
        row = 0
        row = self._section(self, row, "Grid")
        row = self._slider(
            row, "Cell W:", self.cell_w_var, 10, 200, self._grid_changed,
            tooltip="Diamond bounding-box width (map units)",
        )
        row = self._slider(
            row, "Cell H:", self.cell_h_var, 5, 100, self._grid_changed,
            tooltip="Diamond bounding-box height (map units)",
        )
        row = self._slider(
            row, "Offset X:", self.off_x_var, -100, 100, self._grid_changed
        )
        row = self._slider(
            row, "Offset Y:", self.off_y_var, -100, 100, self._grid_changed
        )
        row = self._slider(
            row, "Opacity:", self.opacity_var, 0, 1, self._opacity_changed,
            resolution=0.05,
            tooltip="Grid line and cell number opacity",
        )
        numbers = ttk.Checkbutton(
            self,
            text="Show cell numbers",
            variable=self.numbers_var,
            command=self._numbers_changed,
        )
        numbers.grid(row=row, column=0, columnspan=2, sticky="w", pady=2)
        row += 1

        if self.studio.project.layers:
            row = self._sep(self, row)
            row = self._section(self, row, "Layers")
            for layer in self.studio.project.layers:
                row = self._layer_row(row, layer)

        row = self._sep(self, row)
        row = self._section(self, row, "Actions")
        for label, key, tip in [
            ("Clear selection", "clear", "Deselect all cells (Esc)"),
            ("Undo", "undo", "Undo the last assignment (Ctrl+Z)"),
            ("Reset", "reset", "Remove every zone assignment"),
            ("Export...", "export", "Save assignments as JSON or PNG"),
            ("Import...", "import", "Load assignments from JSON or PNG"),
        ]:
            btn = ttk.Button(self, text=label, command=self.actions[key])
            btn.grid(row=row, column=0, columnspan=2, sticky="ew", pady=2)
            Tooltip(btn, tip)
            row += 1

        row = self._sep(self, row)
        self.stats_label = ttk.Label(self, text="", justify=tk.LEFT)
        self.stats_label.grid(row=row, column=0, columnspan=2, sticky="w")

    def _section(self, parent, row, title):
        ttk.Label(parent, text=title, font=("", 11, "bold")).grid(
            row=row, column=0, columnspan=2, pady=(8, 4), sticky="w"
        )
        return row + 1

    def _sep(self, parent, row):
        ttk.Separator(parent, orient="horizontal").grid(
            row=row, column=0, columnspan=2, sticky="ew", pady=8
        )
        return row + 1

    def _slider(
        self, row, label, var, lo, hi, command, resolution=1, tooltip=None
    ):
        lbl = ttk.Label(self, text=label)
        lbl.grid(row=row, column=0, sticky="w", pady=2)
        scale = tk.Scale(
            self,
            variable=var,
            from_=lo,
            to=hi,
            resolution=resolution,
            orient=tk.HORIZONTAL,
            length=150,
            command=lambda _v: command(),
        )
        scale.grid(row=row, column=1, sticky="w", padx=(5, 0))
        if tooltip:
            Tooltip(lbl, tooltip)
        return row + 1

    def _layer_row(self, row, layer):
        visible_var = tk.BooleanVar(value=layer.visible)
        opacity_var = tk.DoubleVar(value=layer.opacity)

        def on_visible():
            self.studio.set_layer_visible(layer.id, visible_var.get())
            self.on_changed()

        def on_opacity(_v):
            self.studio.set_layer_opacity(layer.id, opacity_var.get())
            self.on_changed()

        check = ttk.Checkbutton(
            self, text=layer.name, variable=visible_var, command=on_visible
        )
        check.grid(row=row, column=0, sticky="w", pady=2)
        if not layer.is_drawable:
            Tooltip(check, f"Image not loaded: {layer.src}")
        tk.Scale(
            self,
            variable=opacity_var,
            from_=0,
            to=1,
            resolution=0.05,
            orient=tk.HORIZONTAL,
            length=150,
            showvalue=False,
            command=on_opacity,
        ).grid(row=row, column=1, sticky="w", padx=(5, 0))
        # Keep the vars alive with the widgets.
        check.visible_var = visible_var
        check.opacity_var = opacity_var
        return row + 1

    # -- callbacks --

    def _grid_changed(self):
        if self._syncing:
            return
        params = self.studio.grid.params
        changes = {
            "cell_w": self.cell_w_var.get(),
            "cell_h": self.cell_h_var.get(),
            "off_x": self.off_x_var.get(),
            "off_y": self.off_y_var.get(),
        }
        if all(getattr(params, k) == v for k, v in changes.items()):
            return
        self.studio.set_grid_params(**changes)
        self.on_changed()

    def _opacity_changed(self):
        self.studio.set_grid_opacity(self.opacity_var.get())
        self.on_changed()

    def _numbers_changed(self):
        self.studio.set_show_numbers(self.numbers_var.get())
        self.on_changed()

    def sync_grid(self):
        """Copy the studio's grid params into the sliders."""
        params = self.studio.grid.params
        self._syncing = True
        try:
            self.cell_w_var.set(params.cell_w)
            self.cell_h_var.set(params.cell_h)
            self.off_x_var.set(params.off_x)
            self.off_y_var.set(params.off_y)
        finally:
            self._syncing = False

    def update_stats(self):
        s = self.studio.stats()
        self.stats_label.config(
            text=(
                f"Zones assigned: {s.assigned_zones}/{s.total_zones}\n"
                f"Cells used: {s.used_cells}\n"
                f"Grid cells: {s.total_cells}\n"
                f"Selected: {s.selected_cells}"
            )
        )


# ---------------------------------------------------------------------------
# Zone panel
# ---------------------------------------------------------------------------


class ZonePanel(ttk.Frame):
    """Searchable group/zone tree."""

    def __init__(self, parent, studio, on_changed):
        super().__init__(parent, padding=10)
        self.studio = studio
        self.on_changed = on_changed
        self.search_var = tk.StringVar(value="")
        self.tree = None
        self._build()
        self.search_var.trace_add("write", lambda *_a: self.refresh())

    def _build(self):
        ttk.Label(self, text="Zones", font=("", 11, "bold")).pack(
            anchor="w", pady=(0, 8)
        )
        search = ttk.Entry(self, textvariable=self.search_var, width=30)
        search.pack(fill=tk.X, pady=(0, 6))
        Tooltip(search, "Filter by zone name, zone id or group name")

        tree_frame = ttk.Frame(self)
        tree_frame.pack(fill=tk.BOTH, expand=True)
        scrollbar = ttk.Scrollbar(tree_frame)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)
        self.tree = ttk.Treeview(
            tree_frame,
            columns=("cells",),
            yscrollcommand=scrollbar.set,
            selectmode="browse",
        )
        self.tree.heading("#0", text="Zone")
        self.tree.heading("cells", text="Cells")
        self.tree.column("cells", width=60, anchor="e")
        self.tree.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scrollbar.config(command=self.tree.yview)

        self.tree.bind("<ButtonRelease-1>", self._on_click)
        self.tree.bind("<Button-3>", self._on_right_click)
        self.tree.bind("<Button-2>", self._on_right_click)

    def refresh(self):
        tree = self.tree
        tree.delete(*tree.get_children())
        store = self.studio.store
        for listing in self.studio.zone_listing(self.search_var.get()):
            group = listing.group
            tag = f"group:{group.id}"
            tree.tag_configure(tag, foreground=group.color)
            parent = tree.insert(
                "",
                tk.END,
                iid=tag,
                text=group.name,
                values=(f"{listing.assigned}/{len(listing.zones)}",),
                open=True,
                tags=(tag,),
            )
            for zone in listing.zones:
                assignment = store.get_assignment(zone.id)
                mark = "✓" if assignment else "·"
                count = f"{len(assignment.cell_ids)}c" if assignment else ""
                tree.insert(
                    parent,
                    tk.END,
                    iid=f"zone:{zone.id}",
                    text=f"{mark} {zone.name}",
                    values=(count,),
                )

    def _zone_at(self, event):
        iid = self.tree.identify_row(event.y)
        if not iid or not iid.startswith("zone:"):
            return None
        return self.studio.project.zone(iid[len("zone:") :])

    def _on_click(self, event):
        zone = self._zone_at(event)
        if zone is None:
            return
        studio = self.studio
        if studio.view.selected_cells:
            changed = studio.on_assign_request(zone.id, zone.group_id)
        else:
            changed = studio.on_zone_highlight(zone.id)
        if changed:
            self.on_changed()

    def _on_right_click(self, event):
        zone = self._zone_at(event)
        if zone is not None and self.studio.on_unassign_request(zone.id):
            self.on_changed()


# ---------------------------------------------------------------------------
# Main application
# ---------------------------------------------------------------------------


class App:
    def __init__(self, project):
        self.root = tk.Tk()
        self.root.title(f"IsoCity Studio - {project.name}")
        self.root.geometry("1400x850")
        self.root.configure(bg=PANEL_BG)

        style = ttk.Style()
        style.theme_use("clam")

        self.studio = Studio(project, status=self)

        self.controls = ControlPanel(
            self.root,
            self.studio,
            on_changed=self._on_changed,
            actions={
                "clear": self._on_clear_selection,
                "undo": self._on_undo,
                "reset": self._on_reset,
                "export": self._on_export,
                "import": self._on_import,
            },
        )
        self.controls.pack(side=tk.LEFT, fill=tk.Y)

        self.zones = ZonePanel(self.root, self.studio, self._on_changed)
        self.zones.pack(side=tk.RIGHT, fill=tk.Y)

        center = ttk.Frame(self.root)
        center.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        self.canvas = tk.Canvas(center, bg=CANVAS_BG, highlightthickness=0)
        self.canvas.pack(side=tk.TOP, fill=tk.BOTH, expand=True)
        self.status_label = ttk.Label(center, text="", padding=(5, 2))
        self.status_label.pack(side=tk.BOTTOM, fill=tk.X)

        self._photo = None  # prevent GC

        self.canvas.bind("<Configure>", lambda _e: self._render())
        self.canvas.bind("<Button-1>", self._on_canvas_click)
        self.canvas.bind("<Shift-Button-1>", self._on_canvas_shift_click)
        self.canvas.bind("<Motion>", self._on_canvas_motion)
        self.canvas.bind("<Leave>", self._on_canvas_leave)
        self.root.bind("<Escape>", lambda _e: self._on_clear_selection())
        self.root.bind("<Delete>", self._on_delete_key)
        self.root.bind("<BackSpace>", self._on_delete_key)
        self.root.bind("<Control-z>", lambda _e: self._on_undo())

        self.zones.refresh()
        self.controls.update_stats()
        self.show_status(
            f'Loaded "{project.name}" - {project.total_zones} zones. '
            "Click cells to select, click a zone to assign."
        )

    # -- StatusSink --

    def show_status(self, message):
        self.status_label.config(text=message)

    # -- rendering --

    def _canvas_size(self):
        return self.canvas.winfo_width(), self.canvas.winfo_height()

    def _render(self):
        cw, ch = self._canvas_size()
        if cw < MIN_CANVAS or ch < MIN_CANVAS:
            return
        frame = self.studio.render(cw, ch, supersample=SUPERSAMPLE)
        self._photo = ImageTk.PhotoImage(frame.image)
        self.canvas.delete("all")
        self.canvas.create_image(0, 0, image=self._photo, anchor="nw")
        self.controls.update_stats()

    def _on_changed(self):
        self.zones.refresh()
        self._render()

    # -- canvas events --

    def _cell_id_at(self, event):
        cw, ch = self._canvas_size()
        if cw < MIN_CANVAS or ch < MIN_CANVAS:
            return None
        cell = self.studio.cell_at_pixel(event.x, event.y, cw, ch)
        return cell.id if cell else None

    def _on_canvas_click(self, event):
        if self.studio.on_cell_click(self._cell_id_at(event)):
            self._render()

    def _on_canvas_shift_click(self, event):
        cell_id = self._cell_id_at(event)
        if self.studio.on_cell_click(cell_id, keep_selection=True):
            self._render()

    def _on_canvas_motion(self, event):
        if self.studio.on_cell_hover(self._cell_id_at(event)):
            self._render()

    def _on_canvas_leave(self, _event):
        if self.studio.on_cell_hover(None):
            self._render()

    # -- actions --

    def _on_delete_key(self, event):
        if isinstance(event.widget, (tk.Entry, ttk.Entry)):
            return
        if self.studio.on_delete_focused():
            self._on_changed()

    def _on_clear_selection(self):
        if self.studio.clear_selection():
            self._render()

    def _on_undo(self):
        if self.studio.on_undo_request() is not None:
            self._on_changed()

    def _on_reset(self):
        if not messagebox.askyesno("Reset", "Reset all zone assignments?"):
            return
        self.studio.on_reset_request()
        self._on_changed()

    def _on_export(self):
        path = filedialog.asksaveasfilename(
            defaultextension=".json",
            filetypes=[("JSON files", "*.json"), ("PNG files", "*.png")],
            initialfile="isocity-zones.json",
        )
        if not path:
            return
        session = self.studio.export_session()
        if path.lower().endswith(".png"):
            frame = self.studio.render(*EXPORT_FRAME_SIZE, supersample=2)
            save_session_png(frame.image, session, path)
        else:
            save_session_json(session, path)

    def _on_import(self):
        path = filedialog.askopenfilename(
            filetypes=[
                ("Session files", "*.json *.png"),
                ("JSON files", "*.json"),
                ("PNG files", "*.png"),
            ],
        )
        if not path:
            return
        try:
            session = load_session(path)
        except (OSError, ValueError) as e:
            messagebox.showerror("Import Error", str(e))
            return
        self.studio.import_session(session)
        self.controls.sync_grid()
        self._on_changed()

    def run(self):
        self.root.mainloop()


def main(argv=None):
    parser = argparse.ArgumentParser(description="IsoCity zone builder")
    parser.add_argument(
        "project",
        nargs="?",
        default=None,
        help="project directory containing project.json (default: sample)",
    )
    args = parser.parse_args(argv)
    project = load_project(args.project or sample_project_path())
    App(project).run()


if __name__ == "__main__":
    main()
