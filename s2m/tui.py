"""Textual TUI application for S2M."""
from __future__ import annotations

import logging

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    Select,
    Static,
    TextArea,
)

from .config import MAX_SCENES, MIN_SCENES, Config
from .export import format_all_prompts, save_data_uri, scene_filename, thumbnail_filename
from .keyhook import ConfigKeySelector
from .state import AspectRatio, SessionState, SessionStore
from .workflow import StoryboardController, initial_state

log = logging.getLogger(__name__)

THUMBNAIL_CARD = "thumbnail"

_STORY_PLACEHOLDER = (
    "Once upon a time in a cyberpunk metropolis, a lone wanderer discovered "
    "an ancient garden hidden beneath the neon lights..."
)

_STATUS_TEXT = {
    "pending": "[dim]Pending visual[/dim]",
    "generating": "[yellow]⏳ Developing visual…[/yellow]",
    "ready": "[green]✓ Visual ready[/green]",
}


class SceneCard(Vertical):
    """One storyboard card: prompt, visual status and its three actions."""

    class Action(Message):
        def __init__(self, card_id: str, action: str) -> None:
            super().__init__()
            self.card_id = card_id
            self.action = action

    def __init__(self, card_id: str, title: str, prompt: str, status: str) -> None:
        super().__init__(id=f"card-{card_id}", classes="scene-card")
        self.card_id = card_id
        self._title = title
        self._prompt = prompt
        self._status = status

    def compose(self) -> ComposeResult:
        yield Label(self._title, classes="card-title")
        yield Static(f'"{self._prompt}"', classes="card-prompt", markup=False)
        with Horizontal(classes="card-actions"):
            yield Button("Generate Visual", classes="card-generate", variant="primary")
            yield Button("Copy Prompt", classes="card-copy")
            yield Button("Download", classes="card-download")
            yield Static("", classes="card-status")

    def on_mount(self) -> None:
        self._apply()

    def show(self, title: str, prompt: str, status: str) -> None:
        self._title, self._prompt, self._status = title, prompt, status
        if self.is_mounted:
            self._apply()

    def _apply(self) -> None:
        self.query_one(".card-title", Label).update(self._title)
        self.query_one(".card-prompt", Static).update(f'"{self._prompt}"')
        self.query_one(".card-status", Static).update(_STATUS_TEXT[self._status])
        self.query_one(".card-generate", Button).disabled = self._status != "pending"
        self.query_one(".card-download", Button).disabled = self._status != "ready"

    @on(Button.Pressed, ".card-generate")
    def _on_generate(self, event: Button.Pressed) -> None:
        event.stop()
        self.post_message(self.Action(self.card_id, "generate"))

    @on(Button.Pressed, ".card-copy")
    def _on_copy(self, event: Button.Pressed) -> None:
        event.stop()
        self.post_message(self.Action(self.card_id, "copy"))

    @on(Button.Pressed, ".card-download")
    def _on_download(self, event: Button.Pressed) -> None:
        event.stop()
        self.post_message(self.Action(self.card_id, "download"))


class KeyScreen(ModalScreen[str | None]):
    """Ask for a Gemini API key."""

    DEFAULT_CSS = """
    KeyScreen {
        align: center middle;
    }

    #key-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $accent;
    }

    #key-buttons {
        height: 3;
        margin-top: 1;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="key-dialog"):
            yield Label("Enter your Gemini API key (saved to ~/.s2m/config.json):")
            yield Input(placeholder="AIza…", password=True, id="key-input")
            with Horizontal(id="key-buttons"):
                yield Button("Save", id="key-save", variant="primary")
                yield Button("Cancel", id="key-cancel")

    @on(Button.Pressed, "#key-save")
    def _save(self) -> None:
        value = self.query_one("#key-input", Input).value.strip()
        self.dismiss(value or None)

    @on(Input.Submitted, "#key-input")
    def _submit(self) -> None:
        self._save()

    @on(Button.Pressed, "#key-cancel")
    def _cancel(self) -> None:
        self.dismiss(None)


class StoryboardApp(App):
    """Story-to-Media storyboard TUI."""

    TITLE = "S2M — Story-to-Media Generator"
    CSS = """
    Screen {
        layout: vertical;
    }

    #input-panel {
        height: auto;
        padding: 1 2 0 2;
        background: $surface;
    }

    #story-input {
        height: 8;
        width: 1fr;
    }

    #options-row {
        height: auto;
        padding: 1 0 0 0;
        align: left middle;
    }

    #options-row Label {
        width: auto;
        padding: 0 1 0 2;
    }

    #scene-count {
        width: 10;
    }

    #ratio-select {
        width: 20;
    }

    /* Button bar */
    #button-bar {
        height: 3;
        padding: 0 2;
        align: left middle;
        background: $surface;
    }

    #button-bar Button {
        margin-right: 1;
    }

    #results {
        height: 1fr;
        padding: 0 2 1 2;
    }

    .scene-card {
        height: auto;
        margin: 1 0 0 0;
        padding: 0 1;
        border: round $primary;
    }

    #card-thumbnail {
        border: double $accent;
    }

    .card-title {
        text-style: bold;
    }

    .card-prompt {
        color: $text-muted;
        padding: 0 0 1 0;
    }

    .card-actions {
        height: 3;
        align: left middle;
    }

    .card-actions Button {
        margin-right: 1;
    }

    .card-status {
        width: auto;
        padding: 0 1;
    }

    /* Status bar */
    #status-bar {
        dock: bottom;
        height: 3;
        padding: 1 2;
        background: $accent;
        color: $text;
    }

    .placeholder-warning {
        color: $warning;
        padding: 0 0 1 0;
        height: auto;
    }
    """

    BINDINGS = [
        Binding("ctrl+g", "generate",     "Generate",        show=True),
        Binding("ctrl+n", "add_more",     "Add scenes",      show=True),
        Binding("ctrl+r", "render_all",   "Render all",      show=True),
        Binding("ctrl+y", "copy_all",     "Copy prompts",    show=True),
        Binding("ctrl+k", "select_key",   "API key",         show=True),
        Binding("ctrl+t", "toggle_test",  "Test mode",       show=True),
        Binding("ctrl+q", "quit",         "Quit",            show=True),
    ]

    def __init__(self, use_placeholders: bool = False) -> None:
        super().__init__()
        self._config = Config.load()
        self._selector = ConfigKeySelector(self._config, on_request=self._open_key_dialog)
        self._store = SessionStore(initial_state(self._config, self._selector))
        self._use_placeholders = use_placeholders
        self._controller = self._make_controller()
        self._cards: dict[str, SceneCard] = {}
        self._unsubscribe = self._store.subscribe(self._render_state)

    def _make_controller(self) -> StoryboardController:
        return StoryboardController(
            self._store,
            self._config,
            key_selector=self._selector,
            use_placeholders=self._use_placeholders,
        )

    def compose(self) -> ComposeResult:
        state = self._store.state
        yield Header()

        with Vertical(id="input-panel"):
            if not self._config.gemini_api_key and not self._use_placeholders:
                yield Static(
                    "⚠  No GEMINI_API_KEY found — press ctrl+k to enter one, "
                    "or ctrl+t for placeholder test mode.",
                    classes="placeholder-warning",
                    id="key-warning",
                )
            yield Label(f"The narrative — e.g. [dim]{_STORY_PLACEHOLDER}[/dim]")
            yield TextArea(state.story, id="story-input")
            with Horizontal(id="options-row"):
                yield Label(f"Scenes ({MIN_SCENES}-{MAX_SCENES}):")
                yield Input(str(state.scene_count), type="integer", id="scene-count")
                yield Label("Aspect ratio:")
                yield Select(
                    [(r.value, r.value) for r in AspectRatio],
                    value=state.aspect_ratio.value,
                    id="ratio-select",
                    allow_blank=False,
                )

        with Horizontal(id="button-bar"):
            yield Button("🚀 Generate Media",     id="btn-generate", variant="primary")
            yield Button("➕ Add More Scenes",    id="btn-add",      disabled=True)
            yield Button("🎨 Generate All Visuals", id="btn-render", variant="warning", disabled=True)
            yield Button("📋 Copy All Prompts",   id="btn-copy",     disabled=True)

        yield VerticalScroll(id="results")
        yield Static("", id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        self._render_state(self._store.state)
        self._update_status("Ready. Enter a story, then press 🚀 Generate Media.")
        if not self._use_placeholders and not self._selector.has_key():
            self._open_key_dialog()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _update_status(self, msg: str) -> None:
        self.query_one("#status-bar", Static).update(msg)

    def _render_state(self, state: SessionState) -> None:
        if not self.is_running:
            return

        has_scenes = bool(state.scenes)
        busy = state.is_generating_prompts
        generate = self.query_one("#btn-generate", Button)
        generate.label = "🔁 Regenerate All" if has_scenes else "🚀 Generate Media"
        generate.disabled = busy
        self.query_one("#btn-add", Button).disabled = busy or not has_scenes
        self.query_one("#btn-render", Button).disabled = busy or not has_scenes
        self.query_one("#btn-copy", Button).disabled = not has_scenes

        if state.error:
            self._update_status(f"⚠  {state.error}")
        elif busy:
            self._update_status("⏳ Developing the media plan…")
        elif has_scenes:
            ready = sum(1 for s in state.scenes if s.image_url)
            rendering = sum(1 for s in state.scenes if s.is_generating_image)
            msg = f"✅ {len(state.scenes)} scenes · {ready} visuals ready"
            if rendering or state.is_generating_thumbnail:
                msg += f" · {rendering + int(state.is_generating_thumbnail)} rendering"
            if self._use_placeholders:
                msg += " · test mode"
            self._update_status(msg)

        self._sync_cards(state)

    def _sync_cards(self, state: SessionState) -> None:
        results = self.query_one("#results", VerticalScroll)
        wanted: dict[str, tuple[str, str, str]] = {}
        if state.thumbnail_prompt:
            if state.thumbnail_url:
                status = "ready"
            elif state.is_generating_thumbnail:
                status = "generating"
            else:
                status = "pending"
            wanted[THUMBNAIL_CARD] = ("🎬 Story Poster", state.thumbnail_prompt, status)
        for scene in state.scenes:
            wanted[scene.id] = (f"Scene {scene.index}", scene.prompt, scene.status)

        for card_id in list(self._cards):
            if card_id not in wanted:
                self._cards.pop(card_id).remove()

        for card_id, (title, prompt, status) in wanted.items():
            card = self._cards.get(card_id)
            if card is None:
                card = SceneCard(card_id, title, prompt, status)
                self._cards[card_id] = card
                if card_id == THUMBNAIL_CARD and len(self._cards) > 1:
                    results.mount(card, before=0)
                else:
                    results.mount(card)
            else:
                card.show(title, prompt, status)

    # ------------------------------------------------------------------
    # Form input
    # ------------------------------------------------------------------

    @on(TextArea.Changed, "#story-input")
    def on_story_changed(self, event: TextArea.Changed) -> None:
        self._controller.set_story(event.text_area.text)

    @on(Input.Changed, "#scene-count")
    def on_scene_count_changed(self, event: Input.Changed) -> None:
        try:
            self._controller.set_scene_count(int(event.value))
        except ValueError:
            pass

    @on(Select.Changed, "#ratio-select")
    def on_ratio_changed(self, event: Select.Changed) -> None:
        if event.value is Select.BLANK:
            return
        self._controller.set_aspect_ratio(str(event.value))

    # ------------------------------------------------------------------
    # Button / key handlers
    # ------------------------------------------------------------------

    @on(Button.Pressed, "#btn-generate")
    def on_generate_btn(self) -> None:
        self.action_generate()

    @on(Button.Pressed, "#btn-add")
    def on_add_btn(self) -> None:
        self.action_add_more()

    @on(Button.Pressed, "#btn-render")
    def on_render_btn(self) -> None:
        self.action_render_all()

    @on(Button.Pressed, "#btn-copy")
    def on_copy_btn(self) -> None:
        self.action_copy_all()

    def action_generate(self) -> None:
        self.run_worker(self._controller.generate_plan(add_more=False), group="plan")

    def action_add_more(self) -> None:
        self.run_worker(self._controller.generate_plan(add_more=True), group="plan")

    def action_render_all(self) -> None:
        self.run_worker(self._controller.generate_all_images(), group="images")

    def action_copy_all(self) -> None:
        state = self._store.state
        if not state.scenes:
            return
        self.copy_to_clipboard(format_all_prompts(state))
        self.notify("All prompts copied to clipboard.")

    def action_select_key(self) -> None:
        self._controller.select_key()

    def action_toggle_test(self) -> None:
        self._use_placeholders = not self._use_placeholders
        self._controller = self._make_controller()
        self.notify("Test mode on — placeholder prompts and images." if self._use_placeholders
                    else "Test mode off — using Gemini.")
        self._render_state(self._store.state)

    def on_scene_card_action(self, message: SceneCard.Action) -> None:
        state = self._store.state
        if message.card_id == THUMBNAIL_CARD:
            prompt, url = state.thumbnail_prompt, state.thumbnail_url
            filename = thumbnail_filename(state.thumbnail_aspect_ratio, url)
            generate = self._controller.generate_thumbnail_image
        else:
            scene = state.find_scene(message.card_id)
            if scene is None:
                return
            prompt, url = scene.prompt, scene.image_url
            filename = scene_filename(scene.index, scene.aspect_ratio, url)

            def generate():
                return self._controller.generate_scene_image(scene.id)

        if message.action == "generate":
            self.run_worker(generate(), group="images")
        elif message.action == "copy":
            self.copy_to_clipboard(prompt)
            self.notify("Prompt copied to clipboard.")
        elif message.action == "download" and url:
            try:
                path = save_data_uri(url, self._config.output_dir, filename)
            except (OSError, ValueError) as e:
                log.exception("Download failed")
                self.notify(f"Download failed: {e}", severity="error")
                return
            self.notify(f"Saved {path}")

    # ------------------------------------------------------------------
    # Key selection
    # ------------------------------------------------------------------

    def _open_key_dialog(self) -> None:
        if not self.is_running:
            return
        self.push_screen(KeyScreen(), self._on_key_entered)

    def _on_key_entered(self, key: str | None) -> None:
        if not key:
            return
        self._config.gemini_api_key = key
        try:
            self._config.save()
        except OSError as e:
            log.warning("Could not save config: %s", e)
        for warning in self.query("#key-warning"):
            warning.remove()
        self.notify("API key saved.")
