"""Tkinter user interface for the hierarchical allocation table."""
from __future__ import annotations

import logging
import tkinter as tk
from pathlib import Path
from tkinter import filedialog, messagebox, ttk
from typing import Optional

from hieralloc.csv_io import read_tree_csv, write_tree_csv
from hieralloc.engine import AllocationEngine
from hieralloc.models import EDIT_ABSOLUTE, EDIT_PERCENT, Tree
from hieralloc.sample_data import sample_tree

from .table import build_display_rows, grand_total_row

logger = logging.getLogger(__name__)


class AllocationTableApp(ttk.Frame):
    """Main application frame hosting the allocation table and edit controls."""

    def __init__(self, master: tk.Tk, tree: Optional[Tree] = None) -> None:
        super().__init__(master, padding=10)
        self.master.title("Hierarchical Allocation Table")
        self.engine = AllocationEngine(tree if tree is not None else sample_tree())
        self.selected_id: Optional[str] = None

        self.input_var = tk.StringVar()
        self.selection_var = tk.StringVar(value="No selection")
        self.total_var = tk.StringVar()
        self.status_var = tk.StringVar(value="Select a row, enter a value or % and pick an allocation button.")

        self.grid(column=0, row=0, sticky="nsew")
        self.master.rowconfigure(0, weight=1)
        self.master.columnconfigure(0, weight=1)
        self.rowconfigure(0, weight=1)
        self.columnconfigure(0, weight=1)

        self._create_menu()
        self._create_widgets()
        self.refresh_tree()

    # ------------------------------------------------------------------
    # UI construction helpers
    # ------------------------------------------------------------------
    def _create_menu(self) -> None:
        menubar = tk.Menu(self.master)

        file_menu = tk.Menu(menubar, tearoff=False)
        file_menu.add_command(label="Load sample data", command=self._load_sample_data)
        file_menu.add_separator()
        file_menu.add_command(label="Import from CSV…", command=self._import_from_csv)
        file_menu.add_command(label="Export to CSV…", command=self._export_to_csv)
        file_menu.add_separator()
        file_menu.add_command(label="Exit", command=self.master.destroy)
        menubar.add_cascade(label="File", menu=file_menu)

        self.master.config(menu=menubar)

    def _create_widgets(self) -> None:
        columns = ("value", "variance")
        self.tree = ttk.Treeview(self, columns=columns, show="tree headings", selectmode="browse")
        self.tree.heading("#0", text="Label")
        self.tree.heading("value", text="Value")
        self.tree.heading("variance", text="Variance %")
        self.tree.column("#0", width=260)
        self.tree.column("value", width=140, anchor="e")
        self.tree.column("variance", width=120, anchor="e")
        self.tree.tag_configure("parent", font=("TkDefaultFont", 10, "bold"))
        self.tree.grid(row=0, column=0, sticky="nsew")
        self.tree.bind("<<TreeviewSelect>>", self._on_tree_select)

        scrollbar = ttk.Scrollbar(self, orient="vertical", command=self.tree.yview)
        scrollbar.grid(row=0, column=1, sticky="ns")
        self.tree.configure(yscrollcommand=scrollbar.set)

        footer = ttk.Frame(self)
        footer.grid(row=1, column=0, columnspan=2, sticky="ew", pady=(6, 0))
        footer.columnconfigure(0, weight=1)
        ttk.Label(footer, textvariable=self.total_var, font=("TkDefaultFont", 10, "bold")).grid(
            row=0, column=0, sticky="w"
        )

        editor = ttk.LabelFrame(self, text="Allocation", padding=10)
        editor.grid(row=2, column=0, columnspan=2, sticky="ew", pady=(10, 0))
        editor.columnconfigure(1, weight=1)

        ttk.Label(editor, textvariable=self.selection_var).grid(row=0, column=0, columnspan=4, sticky="w")
        ttk.Label(editor, text="Input").grid(row=1, column=0, sticky="w", pady=(6, 0))
        entry = ttk.Entry(editor, textvariable=self.input_var, width=18)
        entry.grid(row=1, column=1, sticky="w", padx=(6, 0), pady=(6, 0))
        entry.bind("<Return>", lambda _event: self._apply(EDIT_ABSOLUTE))
        ttk.Button(editor, text="Allocation %", command=lambda: self._apply(EDIT_PERCENT)).grid(
            row=1, column=2, padx=4, pady=(6, 0)
        )
        ttk.Button(editor, text="Allocation Val", command=lambda: self._apply(EDIT_ABSOLUTE)).grid(
            row=1, column=3, padx=4, pady=(6, 0)
        )

        ttk.Label(self, textvariable=self.status_var, wraplength=640, justify="left").grid(
            row=3, column=0, columnspan=2, sticky="w", pady=(10, 0)
        )

    # ------------------------------------------------------------------
    # Menu actions
    # ------------------------------------------------------------------
    def _load_sample_data(self) -> None:
        if not messagebox.askyesno(
            "Replace data",
            "This will reload the sample dataset and reset the baseline. Continue?",
        ):
            return
        self._reset(sample_tree())
        self.status_var.set("Sample data loaded.")

    def _import_from_csv(self) -> None:
        path = filedialog.askopenfilename(
            title="Import allocations from CSV",
            filetypes=[("CSV files", "*.csv"), ("All files", "*.*")],
        )
        if not path:
            return
        if not messagebox.askyesno(
            "Replace data",
            "Importing from CSV replaces the table and resets the baseline. Continue?",
        ):
            return
        try:
            tree = read_tree_csv(path)
            self._reset(tree)
        except (OSError, ValueError) as exc:
            logger.warning("CSV import from %s failed: %s", path, exc)
            messagebox.showerror("Import failed", f"Could not import data: {exc}")
            return
        self.status_var.set(f"Imported {len(self.engine.baseline)} allocations from {Path(path).name}.")

    def _export_to_csv(self) -> None:
        path = filedialog.asksaveasfilename(
            title="Export allocations to CSV",
            defaultextension=".csv",
            filetypes=[("CSV files", "*.csv"), ("All files", "*.*")],
        )
        if not path:
            return
        try:
            count = write_tree_csv(path, self.engine.tree)
        except OSError as exc:  # pragma: no cover - we simply report errors
            messagebox.showerror("Export failed", f"Could not write file: {exc}")
            return
        self.status_var.set(f"Exported {count} allocations to {Path(path).name}.")

    def _reset(self, tree: Tree) -> None:
        self.engine = AllocationEngine(tree)
        self.selected_id = None
        self.input_var.set("")
        self.refresh_tree()

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    def _apply(self, edit_kind: str) -> None:
        if self.selected_id is None:
            self.status_var.set("Select a row first.")
            return
        outcome = self.engine.submit(self.selected_id, self.input_var.get(), edit_kind)
        if not outcome.accepted:
            self.status_var.set(f"Edit ignored: {outcome.reason}.")
            return
        self.input_var.set("")
        node = self.engine.find(self.selected_id)
        label = node.label if node else self.selected_id
        self.status_var.set(f"{label} set to {outcome.target_value:,.2f}.")
        self.refresh_tree()

    # ------------------------------------------------------------------
    # Tree interactions
    # ------------------------------------------------------------------
    def refresh_tree(self) -> None:
        self.tree.delete(*self.tree.get_children())
        parents: list[str] = [""]
        for row in build_display_rows(self.engine.tree):
            del parents[row.depth + 1 :]
            self.tree.insert(
                parents[row.depth],
                "end",
                iid=row.node_id,
                text=row.label,
                values=(row.value, row.variance),
                tags=("parent",) if row.is_parent else (),
                open=True,
            )
            parents.append(row.node_id)

        label, total = grand_total_row(self.engine.grand_total)
        self.total_var.set(f"{label}: {total}")

        if self.selected_id and self.tree.exists(self.selected_id):
            self.tree.selection_set(self.selected_id)
            self.tree.focus(self.selected_id)
            self.tree.see(self.selected_id)

    def _on_tree_select(self, event: tk.Event[tk.EventType]) -> None:  # pragma: no cover - UI callback
        if not self.tree.selection():
            return
        self.selected_id = self.tree.selection()[0]
        node = self.engine.find(self.selected_id)
        if node is not None:
            self.selection_var.set(f"Selected: {node.label} ({node.value:,.2f})")


def run_app() -> None:  # pragma: no cover - convenience wrapper for CLI usage
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    root = tk.Tk()
    style = ttk.Style(root)
    if "clam" in style.theme_names():
        style.theme_use("clam")
    style.configure("Treeview", rowheight=24)
    AllocationTableApp(root)
    root.minsize(720, 480)
    root.mainloop()


if __name__ == "__main__":  # pragma: no cover - manual launch only
    run_app()
