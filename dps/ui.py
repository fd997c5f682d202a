# ui.py
import logging
import sys
import tkinter as tk
import webbrowser
from tkinter import filedialog, messagebox

import pyperclip
import ttkbootstrap as ttk
from PIL import Image, ImageTk

from dps.backend import Backend
from dps.constants import (
    APP_NAME,
    CAPTION_TONES,
    CHECKLIST_MIN_ITEMS,
    CONTACT_URL,
    SUPPORTED_IMAGE_FORMATS,
    SUPPORTED_VIDEO_FORMATS,
    VIDEO_STYLE_LABELS,
    VIDEO_STYLES,
)
from dps.errors import InvalidTransitionError, StudioError
from dps.services import SERVICES, get_service, service_name
from dps.social_pack import captions_text, hashtags_text
from dps.video_editing import FILTER_PRESETS, TEXT_POSITIONS, apply_editing
from dps.workflow import Step

logger = logging.getLogger(__name__)

PAYWALL_MESSAGES = {
    "projects": "You've used all free projects this month.",
    "ai": "You've used all free AI generations this month.",
}
PREVIEW_SIZE = (270, 480)


class App(ttk.Window):
    """
    Main application window for Detailer Pro Studio.

    Renders one screen per workflow step and forwards every user action to
    the workflow controller. Long-running generation calls run on the
    backend executor and are polled with ``after``.
    """
    def __init__(self, themename="flatly", backend=None):
        """Initialize the application with the specified theme."""
        super().__init__(themename=themename)
        self._photo_refs = []
        self._paywall_visible = False

        try:
            self.backend = backend or Backend()
        except (StudioError, OSError) as e:
            messagebox.showerror("Startup Error", f"Failed to initialize application:\n{e}")
            self.destroy()
            sys.exit(1)

        if self.backend.initialization_warning:
            messagebox.showwarning("Warning", self.backend.initialization_warning)

        self.controller = self.backend.controller
        self.title(APP_NAME)
        self.geometry("1200x820")
        self.minsize(960, 680)

        self._create_main_gui()
        self._bind_shortcuts()
        self.protocol("WM_DELETE_WINDOW", self._on_app_close)

        self.render()

    # ====================== WINDOW LIFECYCLE ======================
    def _on_app_close(self):
        """Persist state and close the window."""
        self.backend.shutdown()
        self.destroy()

    # ====================== MAIN GUI STRUCTURE ======================
    def _create_main_gui(self):
        """Create the toolbar, the notice bar and the screen container."""
        self.grid_rowconfigure(2, weight=1)
        self.grid_columnconfigure(0, weight=1)

        self._create_top_toolbar()

        self.notice_frame = ttk.Frame(self, padding="10 4")
        self.notice_frame.grid(row=1, column=0, sticky="ew")
        self.notice_frame.grid_columnconfigure(0, weight=1)
        self.notice_var = tk.StringVar()
        ttk.Label(self.notice_frame, textvariable=self.notice_var, bootstyle="danger", wraplength=900).grid(
            row=0, column=0, sticky="w"
        )
        ttk.Button(
            self.notice_frame, text="✕", width=3, bootstyle="danger-link",
            command=lambda: self._act(self.controller.dismiss_notice),
        ).grid(row=0, column=1, sticky="e")

        self.content = ttk.Frame(self, padding="15 10 15 15")
        self.content.grid(row=2, column=0, sticky="nsew")

    def _create_top_toolbar(self):
        """Create the top toolbar with navigation buttons and usage counters."""
        top_frame = ttk.Frame(self, padding="10 8 10 4")
        top_frame.grid(row=0, column=0, sticky="ew")
        top_frame.columnconfigure(4, weight=1)

        ttk.Button(top_frame, text="🏠 Home", command=lambda: self._act(self.controller.go_home)).grid(
            row=0, column=0, padx=2
        )
        ttk.Button(
            top_frame, text="📸 Photo Job", command=lambda: self._act(self.controller.start_photo_job)
        ).grid(row=0, column=1, padx=2)
        ttk.Button(
            top_frame, text="🎬 Video Lab", command=lambda: self._act(self.controller.start_video_lab)
        ).grid(row=0, column=2, padx=2)
        ttk.Button(
            top_frame, text="⚙️ Settings", command=lambda: self._act(self.controller.open_settings)
        ).grid(row=0, column=3, padx=2)

        self.usage_var = tk.StringVar()
        ttk.Label(top_frame, textvariable=self.usage_var, font=("TkDefaultFont", 9)).grid(
            row=0, column=4, sticky="e"
        )

    def _bind_shortcuts(self):
        """Bind Escape, Ctrl+S, Ctrl+K and the dashboard digit keys."""
        self.bind_all("<Escape>", self._on_escape)
        self.bind_all("<Control-s>", self._on_save_shortcut)
        self.bind_all("<Control-k>", lambda e: self._act(self.controller.open_settings))
        for digit in range(1, len(SERVICES) + 1):
            self.bind_all(f"<KeyPress-{digit}>", self._on_digit)

    # ====================== KEYBOARD SHORTCUTS ======================
    def _typing(self, event):
        return isinstance(event.widget, (tk.Entry, tk.Text, ttk.Entry))

    def _on_escape(self, event):
        if self._typing(event):
            return
        self._act(self.controller.cancel)

    def _on_save_shortcut(self, event):
        state = self.controller.state
        if state.project is not None and state.step in (Step.SOCIAL_PACK, Step.VIDEO_EDIT):
            self._act(self.controller.complete_project)
        return "break"

    def _on_digit(self, event):
        if self._typing(event) or self.controller.state.step is not Step.DASHBOARD:
            return
        service = SERVICES[int(event.char) - 1]
        self._act(self.controller.start_photo_job, service.id)

    # ====================== ACTIONS ======================
    def _act(self, action, *args, **kwargs):
        """Run a controller action and redraw; rejected actions are logged."""
        busy = self.controller.state.busy or self.backend.busy()
        if busy and action not in (self.controller.go_home, self.controller.cancel):
            return None
        try:
            result = action(*args, **kwargs)
        except InvalidTransitionError as e:
            logger.debug("Ignored action: %s", e)
            return None
        self.render()
        return result

    def _quietly(self, action, *args, **kwargs):
        """Run a controller action from a focus or key event without redrawing."""
        try:
            action(*args, **kwargs)
        except InvalidTransitionError as e:
            logger.debug("Ignored action: %s", e)

    def _run_in_background(self, future):
        """Poll a backend future and redraw when it finishes."""
        self.render()
        if future is None:
            return

        def check_future():
            if not future.done():
                if self.controller.state.step is Step.VIDEO_PROCESSING:
                    self._update_video_progress()
                self.after(100, check_future)
                return
            try:
                future.result()
            except (StudioError, OSError) as e:
                messagebox.showerror("Error", str(e), parent=self)
            self.render()

        self.after(100, check_future)

    # ====================== RENDERING ======================
    def render(self):
        """Rebuild the screen for the current workflow step."""
        state = self.controller.state
        for child in self.content.winfo_children():
            child.destroy()
        self._photo_refs = []
        self.content.grid_columnconfigure(0, weight=1)
        self.content.grid_rowconfigure(0, weight=1)

        usage = self.backend.usage_display()
        self.usage_var.set(f"{usage['projects']}  •  {usage['ai']}")

        if state.notice:
            self.notice_var.set(state.notice)
            self.notice_frame.grid()
        else:
            self.notice_frame.grid_remove()

        builder = getattr(self, f"_build_{state.step.value.lower()}")
        builder(self.content)

        if state.paywall and not self._paywall_visible:
            self.after(10, self._show_paywall)

    def _screen(self, parent, title, subtitle=None, back=True):
        """Create a titled frame for a screen and return it."""
        frame = ttk.Frame(parent)
        frame.grid(row=0, column=0, sticky="nsew")
        frame.grid_columnconfigure(0, weight=1)

        header = ttk.Frame(frame)
        header.grid(row=0, column=0, sticky="ew", pady=(0, 10))
        if back:
            ttk.Button(
                header, text="← Back", bootstyle="secondary-link",
                command=lambda: self._act(self.controller.back),
            ).pack(side="left")
        ttk.Label(header, text=title, font=("TkDefaultFont", 18, "bold")).pack(side="left", padx=10)
        if subtitle:
            ttk.Label(frame, text=subtitle, bootstyle="secondary").grid(row=1, column=0, sticky="w")
        return frame

    def _thumbnail(self, parent, reference, size=(150, 150)):
        """Return a label showing a cached thumbnail of an image reference."""
        try:
            image = self.backend.get_cached_thumbnail(reference, size)
        except StudioError:
            return ttk.Label(parent, text="(no preview)", width=18)
        photo = ImageTk.PhotoImage(image)
        self._photo_refs.append(photo)
        return ttk.Label(parent, image=photo)

    def _setup_scrollable_frame(self, parent, row):
        """Create a vertically scrollable frame inside ``parent``."""
        canvas = tk.Canvas(parent, borderwidth=0, highlightthickness=0)
        scrollbar = ttk.Scrollbar(parent, orient="vertical", command=canvas.yview)
        canvas.configure(yscrollcommand=scrollbar.set)
        inner = ttk.Frame(canvas)
        frame_id = canvas.create_window((0, 0), window=inner, anchor="nw")
        inner.bind("<Configure>", lambda e: canvas.configure(scrollregion=canvas.bbox("all")))
        canvas.bind("<Configure>", lambda e: canvas.itemconfig(frame_id, width=e.width))
        canvas.grid(row=row, column=0, sticky="nsew")
        scrollbar.grid(row=row, column=1, sticky="ns")
        parent.grid_rowconfigure(row, weight=1)
        return inner

    # ====================== DASHBOARD ======================
    def _build_dashboard(self, parent):
        """Greeting, quick starts and the project gallery."""
        name = self.backend.studio.profile.get("display_name") or "Detailer"
        frame = self._screen(parent, f"Welcome back, {name}", "Pick a job to start creating.", back=False)

        actions = ttk.Frame(frame)
        actions.grid(row=2, column=0, sticky="w", pady=10)
        default_service = self.backend.studio.settings.default_service_id
        ttk.Button(
            actions, text=f"📸 Start {service_name(default_service, 'Photo Job')}", bootstyle="primary",
            command=lambda: self._act(self.controller.start_photo_job, default_service),
        ).pack(side="left", padx=(0, 5))
        ttk.Button(
            actions, text="🎬 Open Video Lab", bootstyle="info",
            command=lambda: self._act(self.controller.start_video_lab),
        ).pack(side="left", padx=5)

        services = ttk.Labelframe(frame, text="Quick start (keys 1-6)", padding=8)
        services.grid(row=3, column=0, sticky="ew", pady=5)
        for idx, service in enumerate(SERVICES):
            ttk.Button(
                services, text=f"{idx + 1}. {service.icon} {service.name}", bootstyle="secondary-outline",
                command=lambda sid=service.id: self._act(self.controller.start_photo_job, sid),
            ).grid(row=0, column=idx, padx=2, sticky="ew")

        gallery_header = ttk.Frame(frame)
        gallery_header.grid(row=4, column=0, sticky="ew", pady=(15, 5))
        ttk.Label(gallery_header, text="Recent projects", font=("TkDefaultFont", 13, "bold")).pack(side="left")
        gallery = self.backend.studio.gallery
        if len(gallery):
            ttk.Button(
                gallery_header, text="Clear All", bootstyle="danger-link", command=self.ui_clear_gallery
            ).pack(side="right")

        grid = self._setup_scrollable_frame(frame, 5)
        if not len(gallery):
            ttk.Label(grid, text="No projects yet. Start a Photo Job or Video Lab to see them here.").grid(
                row=0, column=0, pady=30
            )
            return

        for idx, project in enumerate(gallery.items):
            card = ttk.Frame(grid, padding=6, bootstyle="light")
            card.grid(row=idx // 4, column=idx % 4, padx=6, pady=6, sticky="n")
            self._thumbnail(card, project.original_image, (200, 150)).pack()
            ttk.Label(card, text=service_name(project.service_id, "Detailing Clip"), font=("TkDefaultFont", 10, "bold")).pack(anchor="w")
            ttk.Label(card, text=f"{project.date}  •  {project.status.value}", bootstyle="secondary").pack(anchor="w")
            ttk.Button(
                card, text="Delete", bootstyle="danger-link",
                command=lambda pid=project.id: self.ui_delete_gallery_project(pid),
            ).pack(anchor="e")

    def ui_delete_gallery_project(self, project_id):
        """Remove one project from the gallery after confirmation."""
        if messagebox.askyesno("Delete", "Delete this project?", parent=self):
            self.backend.delete_gallery_project(project_id)
            self.render()

    def ui_clear_gallery(self):
        """Remove every project from the gallery after confirmation."""
        if messagebox.askyesno("Clear gallery", "Clear all projects from gallery?", parent=self):
            self.backend.studio.gallery.clear()
            self.render()

    # ====================== PHOTO JOB ======================
    def _build_select_service(self, parent):
        frame = self._screen(parent, "Select a service")
        selected = self.controller.state.draft.service_id
        options = ttk.Frame(frame)
        options.grid(row=2, column=0, sticky="ew", pady=10)
        for idx, service in enumerate(SERVICES):
            style = "primary" if service.id == selected else "secondary-outline"
            ttk.Button(
                options, text=f"{service.icon}  {service.name}\n{service.description}", bootstyle=style,
                command=lambda sid=service.id: self._act(self.controller.select_service, sid),
            ).grid(row=idx // 2, column=idx % 2, padx=5, pady=5, sticky="ew")
            options.grid_columnconfigure(idx % 2, weight=1)
        ttk.Button(
            frame, text="Continue →", bootstyle="primary",
            state="normal" if selected else "disabled",
            command=lambda: self._act(self.controller.continue_to_checklist),
        ).grid(row=3, column=0, sticky="e")

    def _build_checklist(self, parent):
        state = self.controller.state
        service = get_service(state.draft.service_id)
        frame = self._screen(
            parent, f"{service.name if service else 'Service'} shot list",
            f"Confirm at least {CHECKLIST_MIN_ITEMS} shots you have captured.",
        )
        items = ttk.Frame(frame)
        items.grid(row=2, column=0, sticky="w", pady=10)
        for idx, item in enumerate(service.checklist if service else ()):
            var = tk.BooleanVar(value=item in state.draft.checklist)
            ttk.Checkbutton(
                items, text=item, variable=var, bootstyle="round-toggle",
                command=lambda i=item: self._act(self.controller.toggle_checklist_item, i),
            ).grid(row=idx, column=0, sticky="w", pady=2)
        count = len(state.draft.checklist)
        ttk.Button(
            frame, text=f"Continue ({count}/{CHECKLIST_MIN_ITEMS}) →", bootstyle="primary",
            state="normal" if count >= CHECKLIST_MIN_ITEMS else "disabled",
            command=lambda: self._act(self.controller.continue_to_upload),
        ).grid(row=3, column=0, sticky="e")

    def _build_upload(self, parent):
        uploads = self.controller.state.draft.uploads
        frame = self._screen(parent, "Upload photos", "Add your before and after shots in order.")
        toolbar = ttk.Frame(frame)
        toolbar.grid(row=2, column=0, sticky="ew", pady=10)
        ttk.Button(toolbar, text="➕ Add Photos", command=self.ui_add_photos).pack(side="left")
        if uploads:
            ttk.Button(
                toolbar, text="Clear", bootstyle="secondary-link",
                command=lambda: self._act(self.controller.clear_uploads),
            ).pack(side="left", padx=5)
        ttk.Button(
            toolbar, text=f"✨ Process {len(uploads)} photo(s)", bootstyle="success",
            state="normal" if uploads else "disabled", command=self.ui_process_uploads,
        ).pack(side="right")
        self._upload_grid(frame, uploads, 3)

    def _upload_grid(self, frame, uploads, row):
        grid = self._setup_scrollable_frame(frame, row)
        for idx, reference in enumerate(uploads):
            cell = ttk.Frame(grid, padding=4)
            cell.grid(row=idx // 5, column=idx % 5, padx=4, pady=4)
            self._thumbnail(cell, reference).pack()
            ttk.Button(
                cell, text="Remove", bootstyle="danger-link",
                command=lambda i=idx: self._act(self.controller.remove_upload, i),
            ).pack()

    def ui_add_photos(self):
        """Pick image files and add them to the current draft."""
        patterns = " ".join(f"*{ext}" for ext in SUPPORTED_IMAGE_FORMATS)
        paths = filedialog.askopenfilenames(
            title="Select photos", filetypes=[("Images", patterns), ("All files", "*.*")], parent=self
        )
        if not paths:
            return
        self.config(cursor="watch")
        self.update_idletasks()
        self._act(self.controller.add_uploads, list(paths))
        self.config(cursor="")

    def ui_process_uploads(self):
        """Start the pairing, enhancement and social pack pipeline."""
        try:
            future = self.backend.process_uploads_async()
        except InvalidTransitionError as e:
            logger.debug("Ignored action: %s", e)
            return
        self._run_in_background(future)

    def _build_processing(self, parent):
        frame = self._screen(parent, "Working on it…", "Pairing photos, enhancing and writing your social pack.", back=False)
        bar = ttk.Progressbar(frame, mode="indeterminate", bootstyle="success-striped")
        bar.grid(row=2, column=0, sticky="ew", pady=30)
        bar.start(15)

    def _build_before_after(self, parent):
        state = self.controller.state
        frame = self._screen(parent, "Before & after", "Swap or remove pairs, then continue.", back=False)
        grid = self._setup_scrollable_frame(frame, 2)
        if not state.draft.pairs:
            ttk.Label(grid, text="No pairs found. You can still continue with the enhanced photo.").grid(
                row=0, column=0, pady=20
            )
        for idx, pair in enumerate(state.draft.pairs):
            row = ttk.Frame(grid, padding=6)
            row.grid(row=idx, column=0, sticky="w", pady=4)
            ttk.Label(row, text="BEFORE").grid(row=0, column=0)
            ttk.Label(row, text="AFTER").grid(row=0, column=1)
            self._thumbnail(row, pair.before, (220, 165)).grid(row=1, column=0, padx=4)
            self._thumbnail(row, pair.after, (220, 165)).grid(row=1, column=1, padx=4)
            ttk.Button(
                row, text="⇄ Swap", command=lambda pid=pair.id: self._act(self.controller.swap_pair, pid)
            ).grid(row=1, column=2, padx=4)
            ttk.Button(
                row, text="Delete", bootstyle="danger-link",
                command=lambda pid=pair.id: self._act(self.controller.delete_pair, pid),
            ).grid(row=1, column=3, padx=4)
        ttk.Button(
            frame, text="Looks good →", bootstyle="primary",
            command=lambda: self._act(self.controller.confirm_pairs),
        ).grid(row=3, column=0, sticky="e", pady=10)

    def _build_social_pack(self, parent):
        project = self.controller.state.project
        social = project.social_data
        frame = self._screen(parent, "Social pack", service_name(project.service_id, "Detail"))

        body = ttk.Frame(frame)
        body.grid(row=2, column=0, sticky="nsew", pady=10)
        body.grid_columnconfigure(1, weight=1)
        frame.grid_rowconfigure(2, weight=1)
        self._thumbnail(body, project.edited_image or project.original_image, (320, 320)).grid(
            row=0, column=0, rowspan=3, sticky="n", padx=(0, 15)
        )

        captions = ttk.Labelframe(body, text="Captions", padding=8)
        captions.grid(row=0, column=1, sticky="ew")
        captions.grid_columnconfigure(0, weight=1)
        for idx, caption in enumerate(social.captions):
            text = tk.Text(captions, height=3, wrap="word", relief="solid", borderwidth=1)
            text.insert("1.0", caption)
            text.grid(row=idx, column=0, sticky="ew", pady=3)
            text.bind(
                "<FocusOut>",
                lambda e, i=idx, w=text: self._quietly(self.controller.update_caption, i, w.get("1.0", "end").strip()),
            )
            ttk.Button(
                captions, text="↻", width=3, command=lambda i=idx: self.ui_regenerate_caption(i)
            ).grid(row=idx, column=1, padx=2)
            ttk.Button(
                captions, text="Copy", width=5, command=lambda w=text: self.ui_copy(w.get("1.0", "end").strip())
            ).grid(row=idx, column=2, padx=2)

        tags = ttk.Labelframe(body, text="Hashtags", padding=8)
        tags.grid(row=1, column=1, sticky="ew", pady=5)
        ttk.Label(tags, text=hashtags_text(social), wraplength=600).pack(side="left")
        ttk.Button(tags, text="Copy", command=lambda: self.ui_copy(hashtags_text(social))).pack(side="right")

        extras = ttk.Labelframe(body, text="TikTok script & posting times", padding=8)
        extras.grid(row=2, column=1, sticky="ew")
        ttk.Label(extras, text=social.tiktok_script or "(TikTok script disabled in settings)", wraplength=600).pack(anchor="w")
        ttk.Label(extras, text="Best times: " + ", ".join(social.posting_times), bootstyle="secondary").pack(anchor="w")

        footer = ttk.Frame(frame)
        footer.grid(row=3, column=0, sticky="ew", pady=5)
        ttk.Label(footer, text="Quick video:").pack(side="left")
        for style in ("transformation", "satisfying", "cinematic"):
            ttk.Button(
                footer, text=VIDEO_STYLE_LABELS[style], bootstyle="info-outline",
                command=lambda s=style: self.ui_generate_video(s),
            ).pack(side="left", padx=3)
        ttk.Button(footer, text="Copy all captions", command=lambda: self.ui_copy(captions_text(social))).pack(
            side="left", padx=10
        )
        ttk.Button(
            footer, text="💾 Finish & Export (Ctrl+S)", bootstyle="success",
            command=lambda: self._act(self.controller.complete_project),
        ).pack(side="right")

    def ui_regenerate_caption(self, index):
        """Ask the generator for a fresh caption at ``index``."""
        self._run_in_background(self.backend.run_async(self.controller.regenerate_caption, index))

    def ui_copy(self, text):
        """Copy text to the clipboard."""
        if not text:
            messagebox.showwarning("Warning", "Nothing to copy.", parent=self)
            return
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            messagebox.showerror("Error", f"Could not copy to clipboard:\n{e}", parent=self)

    # ====================== VIDEO LAB ======================
    def _build_video_lab(self, parent):
        state = self.controller.state
        style = state.draft.video_style
        frame = self._screen(parent, "Video Lab", "Pick a style, brainstorm a brief and produce a clip.")

        styles = ttk.Frame(frame)
        styles.grid(row=2, column=0, sticky="ew", pady=10)
        for idx, key in enumerate(VIDEO_STYLES):
            ttk.Button(
                styles, text=VIDEO_STYLE_LABELS[key], bootstyle="primary" if key == style else "secondary-outline",
                command=lambda k=key: self.ui_toggle_style(k),
            ).grid(row=0, column=idx, padx=3, sticky="ew")
            styles.grid_columnconfigure(idx, weight=1)

        sources = ttk.Frame(frame)
        sources.grid(row=3, column=0, sticky="ew")
        ttk.Button(sources, text="➕ Source photos", command=self.ui_add_photos).pack(side="left")
        ttk.Button(sources, text="📂 Edit my own video", command=self.ui_open_video).pack(side="left", padx=5)
        if state.draft.uploads:
            ttk.Label(sources, text=f"{len(state.draft.uploads)} photo(s) loaded", bootstyle="secondary").pack(side="left", padx=5)

        if not style:
            return

        brief = ttk.Labelframe(frame, text="Creative brief", padding=8)
        brief.grid(row=4, column=0, sticky="ew", pady=10)
        brief.grid_columnconfigure(0, weight=1)
        creative = state.draft.video_creative
        if creative:
            ttk.Label(brief, text=f"Hook: {creative.hook}", font=("TkDefaultFont", 10, "bold")).grid(row=0, column=0, sticky="w")
            ttk.Label(brief, text=creative.script, wraplength=800).grid(row=1, column=0, sticky="w")
            ttk.Label(brief, text=f"Music: {creative.suggested_music_mood}", bootstyle="secondary").grid(row=2, column=0, sticky="w")
        ttk.Button(brief, text="💡 Brainstorm", command=self.ui_brainstorm).grid(row=0, column=1, sticky="e")

        ttk.Label(frame, text="Scene description").grid(row=5, column=0, sticky="w")
        prompt = tk.Text(frame, height=4, wrap="word", relief="solid", borderwidth=1)
        prompt.insert("1.0", state.draft.video_prompt)
        prompt.grid(row=6, column=0, sticky="ew", pady=5)
        prompt.bind("<KeyRelease>", lambda e: self._quietly(self.controller.set_video_prompt, prompt.get("1.0", "end").strip()))

        ttk.Button(
            frame, text="🎬 Produce clip", bootstyle="success",
            command=lambda: self.ui_generate_video(style),
        ).grid(row=7, column=0, sticky="e")

    def ui_toggle_style(self, style):
        """Select a video style, or clear it when it is already selected."""
        if self.controller.state.draft.video_style == style:
            self._act(self.controller.clear_video_style)
        else:
            self._act(self.controller.select_video_style, style)

    def ui_brainstorm(self):
        """Generate a creative brief for the selected style."""
        self._run_in_background(self.backend.run_async(self.controller.brainstorm_video_creative))

    def ui_open_video(self):
        """Open a video file from disk in the editor."""
        patterns = " ".join(f"*{ext}" for ext in SUPPORTED_VIDEO_FORMATS)
        path = filedialog.askopenfilename(
            title="Select a video", filetypes=[("Videos", patterns), ("All files", "*.*")], parent=self
        )
        if path:
            self._act(self.controller.open_uploaded_video, path)

    def ui_generate_video(self, style):
        """Start video generation for ``style``."""
        try:
            future = self.backend.generate_video_async(style)
        except InvalidTransitionError as e:
            logger.debug("Ignored action: %s", e)
            return
        self._run_in_background(future)

    def _build_video_processing(self, parent):
        frame = self._screen(parent, "Producing your clip…", "This usually takes a few minutes.", back=False)
        self.video_status_var = tk.StringVar()
        self.video_progress = ttk.Progressbar(frame, maximum=100, bootstyle="info-striped")
        self.video_progress.grid(row=2, column=0, sticky="ew", pady=(30, 5))
        ttk.Label(frame, textvariable=self.video_status_var).grid(row=3, column=0, sticky="w")
        self._update_video_progress()

    def _update_video_progress(self):
        status, percent = self.controller.video_progress
        if hasattr(self, "video_status_var"):
            self.video_status_var.set(status)
            self.video_progress["value"] = percent

    # ====================== VIDEO EDIT ======================
    def _build_video_edit(self, parent):
        state = self.controller.state
        project = state.project
        editing = state.draft.editing
        frame = self._screen(parent, "Edit clip", project.generated_video_url or "")

        body = ttk.Frame(frame)
        body.grid(row=2, column=0, sticky="nsew", pady=10)
        frame.grid_rowconfigure(2, weight=1)

        preview = self._preview_frame(project)
        photo = ImageTk.PhotoImage(apply_editing(preview, editing))
        self._photo_refs.append(photo)
        ttk.Label(body, image=photo).grid(row=0, column=0, rowspan=2, sticky="n", padx=(0, 15))

        controls = ttk.Labelframe(body, text="Adjustments", padding=8)
        controls.grid(row=0, column=1, sticky="new")
        sliders = (
            ("Trim start %", "trim_start", 0, 100),
            ("Trim end %", "trim_end", 0, 100),
            ("Brightness %", "brightness", 50, 150),
            ("Contrast %", "contrast", 50, 150),
            ("Saturation %", "saturation", 0, 200),
            ("Font size", "font_size", 12, 96),
        )
        for row, (label, field, low, high) in enumerate(sliders):
            self._create_adjustment_slider(controls, row, label, field, low, high, getattr(editing, field))

        speed_row = len(sliders)
        ttk.Label(controls, text="Speed").grid(row=speed_row, column=0, sticky="w")
        speed = ttk.Combobox(controls, values=["0.5", "1.0", "1.5", "2.0"], width=6, state="readonly")
        speed.set(f"{editing.playback_speed:.1f}")
        speed.grid(row=speed_row, column=1, sticky="w")
        speed.bind("<<ComboboxSelected>>", lambda e: self._act(self.controller.update_editing, playback_speed=float(speed.get())))

        muted = tk.BooleanVar(value=editing.is_muted)
        ttk.Checkbutton(
            controls, text="Muted", variable=muted, bootstyle="round-toggle",
            command=lambda: self._act(self.controller.update_editing, is_muted=muted.get()),
        ).grid(row=speed_row + 1, column=0, sticky="w", pady=4)

        text_box = ttk.Labelframe(body, text="Text & styles", padding=8)
        text_box.grid(row=1, column=1, sticky="new", pady=10)
        overlay = ttk.Entry(text_box, width=40)
        overlay.insert(0, editing.text_overlay)
        overlay.grid(row=0, column=0, columnspan=3, sticky="ew")
        overlay.bind("<Return>", lambda e: self._act(self.controller.update_editing, text_overlay=overlay.get()))
        overlay.bind("<FocusOut>", lambda e: self._quietly(self.controller.update_editing, text_overlay=overlay.get()))

        for idx, position in enumerate(TEXT_POSITIONS):
            ttk.Button(
                text_box, text=position.title(),
                bootstyle="primary" if position == editing.text_position else "secondary-outline",
                command=lambda p=position: self._act(self.controller.update_editing, text_position=p),
            ).grid(row=1, column=idx, pady=4, sticky="ew")
        background = tk.BooleanVar(value=editing.text_background)
        ttk.Checkbutton(
            text_box, text="Text background", variable=background,
            command=lambda: self._act(self.controller.update_editing, text_background=background.get()),
        ).grid(row=2, column=0, columnspan=3, sticky="w")

        for idx, name in enumerate(FILTER_PRESETS):
            ttk.Button(
                text_box, text=name.replace("_", " ").upper(),
                bootstyle="primary" if name == editing.filter else "secondary-outline",
                command=lambda n=name: self._act(self.controller.update_editing, filter=n),
            ).grid(row=3 + idx // 3, column=idx % 3, padx=2, pady=2, sticky="ew")

        ttk.Button(
            frame, text="💾 Export Masterpiece (Ctrl+S)", bootstyle="success",
            command=lambda: self._act(self.controller.complete_project),
        ).grid(row=3, column=0, sticky="e")

    def _create_adjustment_slider(self, parent, row, label_text, field, from_val, to_val, initial_val):
        """Create a labelled slider that commits its value on release."""
        ttk.Label(parent, text=label_text).grid(row=row, column=0, sticky="w")
        value_var = tk.IntVar(value=int(initial_val))
        slider = ttk.Scale(parent, from_=from_val, to=to_val, orient="horizontal", length=220)
        slider.set(initial_val)
        slider.grid(row=row, column=1, sticky="ew", padx=5)
        ttk.Label(parent, textvariable=value_var, width=4).grid(row=row, column=2)
        slider.configure(command=lambda v: value_var.set(int(float(v))))
        slider.bind(
            "<ButtonRelease-1>",
            lambda e: self._act(self.controller.update_editing, **{field: int(float(slider.get()))}),
        )

    def _preview_frame(self, project):
        """Pick a still to preview edits on; a blank portrait frame when none exists."""
        reference = project.edited_image or project.original_image
        if reference:
            try:
                image = self.backend.image_processor.load_image(reference).convert("RGB")
                image.thumbnail(PREVIEW_SIZE, Image.Resampling.LANCZOS)
                return image
            except StudioError as e:
                logger.warning("Preview unavailable: %s", e)
        return Image.new("RGB", PREVIEW_SIZE, (30, 41, 59))

    # ====================== EXPORT ======================
    def _build_export(self, parent):
        project = self.controller.state.project
        frame = self._screen(parent, "Finished!", "Your masterpiece is ready to share.")
        buttons = ttk.Frame(frame)
        buttons.grid(row=2, column=0, pady=30)
        ttk.Button(
            buttons, text="📥 Save All Assets", bootstyle="primary", command=self.ui_save_project_output
        ).grid(row=0, column=0, columnspan=2, sticky="ew", pady=5)
        if project.social_data:
            ttk.Button(
                buttons, text="📋 Copy captions", command=lambda: self.ui_copy(captions_text(project.social_data))
            ).grid(row=1, column=0, padx=3, sticky="ew")
            ttk.Button(
                buttons, text="#️⃣ Copy hashtags", command=lambda: self.ui_copy(hashtags_text(project.social_data))
            ).grid(row=1, column=1, padx=3, sticky="ew")
        ttk.Button(
            buttons, text="Start a new job", bootstyle="secondary-link",
            command=lambda: self._act(self.controller.go_home),
        ).grid(row=2, column=0, columnspan=2, pady=10)

    def ui_save_project_output(self):
        """Save every asset of the current project to a chosen folder."""
        base_folder = filedialog.askdirectory(title="Select Folder to Save Project Output", initialdir=".", parent=self)
        if not base_folder:
            return

        self.config(cursor="watch")
        self.update_idletasks()
        success, output_folder, files_ok, files_failed, social_ok = self.controller.export_assets(base_folder)
        self.config(cursor="")

        if success:
            summary = (
                f"Saved to:\n{output_folder}\n\nFiles OK: {files_ok}\nFiles Failed: {files_failed}\n"
                f"Social Pack Saved: {'OK' if social_ok else 'No'}"
            )
            messagebox.showinfo("Export", summary, parent=self)
        else:
            messagebox.showerror("Error", output_folder, parent=self)

    # ====================== SETTINGS ======================
    def _build_settings(self, parent):
        """Profile, preferences and the monthly usage summary."""
        studio = self.backend.studio
        settings = studio.settings
        frame = self._screen(parent, "Settings")

        profile = ttk.Labelframe(frame, text="Profile", padding=10)
        profile.grid(row=2, column=0, sticky="ew", pady=5)
        if studio.profile.get("avatar"):
            self._thumbnail(profile, studio.profile["avatar"], (64, 64)).grid(row=0, column=0, rowspan=2, padx=(0, 10))
        ttk.Label(profile, text="Display name").grid(row=0, column=1, sticky="w")
        name = ttk.Entry(profile, width=30)
        name.insert(0, studio.profile.get("display_name", ""))
        name.grid(row=0, column=2, sticky="w", padx=5)
        name.bind("<FocusOut>", lambda e: self.backend.update_display_name(name.get()))
        ttk.Button(profile, text="Change avatar", command=self.ui_change_avatar).grid(row=1, column=1, sticky="w", pady=5)
        ttk.Button(
            profile, text="Remove avatar", bootstyle="secondary-link",
            command=lambda: (self.backend.clear_avatar(), self.render()),
        ).grid(row=1, column=2, sticky="w")

        prefs = ttk.Labelframe(frame, text="Preferences", padding=10)
        prefs.grid(row=3, column=0, sticky="ew", pady=5)
        ttk.Label(prefs, text="Default service").grid(row=0, column=0, sticky="w")
        service_box = ttk.Combobox(prefs, values=[s.name for s in SERVICES], state="readonly", width=25)
        service_box.set(service_name(settings.default_service_id, SERVICES[0].name))
        service_box.grid(row=0, column=1, sticky="w", padx=5, pady=2)
        service_box.bind(
            "<<ComboboxSelected>>",
            lambda e: self._save_setting(default_service_id=SERVICES[service_box.current()].id),
        )

        ttk.Label(prefs, text="Caption tone").grid(row=1, column=0, sticky="w")
        tone_box = ttk.Combobox(prefs, values=list(CAPTION_TONES), state="readonly", width=25)
        tone_box.set(settings.caption_tone)
        tone_box.grid(row=1, column=1, sticky="w", padx=5, pady=2)
        tone_box.bind("<<ComboboxSelected>>", lambda e: self._save_setting(caption_tone=tone_box.get()))

        toggles = (
            ("Auto-save finished projects to gallery", "auto_save_to_gallery"),
            ("Generate TikTok scripts", "auto_generate_tiktok"),
            ("Auto-pair before/after photos", "auto_pair_photos"),
        )
        for row, (label, field) in enumerate(toggles, start=2):
            var = tk.BooleanVar(value=getattr(settings, field))
            ttk.Checkbutton(
                prefs, text=label, variable=var, bootstyle="round-toggle",
                command=lambda f=field, v=var: self._save_setting(**{f: v.get()}),
            ).grid(row=row, column=0, columnspan=2, sticky="w", pady=2)

        usage = ttk.Labelframe(frame, text="This month", padding=10)
        usage.grid(row=4, column=0, sticky="ew", pady=5)
        for row, text in enumerate(self.backend.usage_display().values()):
            ttk.Label(usage, text=text).grid(row=row, column=0, sticky="w")
        ttk.Label(usage, text=f"Device ID: {studio.user_id}", bootstyle="secondary").grid(row=2, column=0, sticky="w")

    def _save_setting(self, **changes):
        self.backend.update_settings(**changes)
        self.render()

    def ui_change_avatar(self):
        """Pick an image file and store a shrunken copy as the avatar."""
        patterns = " ".join(f"*{ext}" for ext in SUPPORTED_IMAGE_FORMATS)
        path = filedialog.askopenfilename(title="Select avatar", filetypes=[("Images", patterns)], parent=self)
        if not path:
            return
        ok, error = self.backend.update_avatar_from_file(path)
        if not ok:
            messagebox.showerror("Error", error, parent=self)
        self.render()

    # ====================== PAYWALL ======================
    def _show_paywall(self):
        """Show the monthly-limit dialog with the contact link."""
        reason = self.controller.state.paywall
        if not reason or self._paywall_visible:
            return
        self._paywall_visible = True
        message = PAYWALL_MESSAGES.get(reason, "You've reached your free monthly limit.")
        if messagebox.askyesno("Free limit reached", f"{message}\n\nContact us to get unlimited access?", parent=self):
            webbrowser.open(CONTACT_URL)
        self._paywall_visible = False
        self._act(self.controller.dismiss_paywall)
