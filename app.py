#!/usr/bin/env python
"""Main entry point for Detailer Pro Studio."""

import sys
import tkinter as tk
from pathlib import Path
from tkinter import messagebox

from dps.config import default_data_dir, get_log_level, load_environment
from dps.errors import StudioError
from dps.logging_config import setup_logger


def main():
    load_environment()
    logger = setup_logger("dps", Path(default_data_dir()) / "logs" / "studio.log", get_log_level())

    from dps.ui import App

    try:
        app = App()
        app.mainloop()
    except (StudioError, OSError, tk.TclError) as e:
        # Unexpected errors during App init itself
        logger.exception("Application failed to start")
        try:
            root = tk.Tk()
            root.withdraw()
            messagebox.showerror("Critical Startup Error", f"Application failed to initialize:\n{e}")
            root.destroy()
        except tk.TclError:
            pass
        sys.exit(1)


if __name__ == "__main__":
    main()
