"""Entry point for S2M: TUI by default, headless with --story."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def _setup_logging() -> None:
    log_dir = Path.home() / ".s2m"
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_dir / "s2m.log"),
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _run_headless(args: argparse.Namespace) -> int:
    from .config import Config
    from .export import format_all_prompts, save_data_uri, scene_filename, thumbnail_filename
    from .keyhook import ConfigKeySelector
    from .state import SessionStore
    from .workflow import StoryboardController, initial_state

    config = Config.load()
    use_placeholders = args.test
    if not config.gemini_api_key and not use_placeholders:
        print("⚠  No GEMINI_API_KEY found — switching to placeholder mode.")
        use_placeholders = True

    selector = ConfigKeySelector(config)
    store = SessionStore(initial_state(config, selector))
    controller = StoryboardController(store, config, selector, use_placeholders=use_placeholders)

    controller.set_story(args.story)
    if args.scenes is not None:
        controller.set_scene_count(args.scenes)
    if args.ratio:
        controller.set_aspect_ratio(args.ratio)

    print(f"📝 Planning {store.state.scene_count} scenes...")
    state = await controller.generate_plan()
    if state.error:
        print(f"Error: {state.error}")
        return 1

    print()
    print(format_all_prompts(state))

    if not args.images:
        return 0

    print(f"\n🎨 Rendering {len(state.scenes)} scenes + thumbnail at {state.aspect_ratio.value}...")
    state = await controller.generate_all_images()

    failed = 0
    out_dir = Path(config.output_dir)
    for scene in state.scenes:
        if not scene.image_url:
            print(f"  ✗ Scene {scene.index}: no image")
            failed += 1
            continue
        path = save_data_uri(
            scene.image_url, out_dir,
            scene_filename(scene.index, scene.aspect_ratio, scene.image_url),
        )
        print(f"  ✓ Scene {scene.index}: {path}")
    if state.thumbnail_url:
        path = save_data_uri(
            state.thumbnail_url, out_dir,
            thumbnail_filename(state.thumbnail_aspect_ratio, state.thumbnail_url),
        )
        print(f"  ✓ Thumbnail: {path}")
    else:
        print("  ✗ Thumbnail: no image")
        failed += 1
    return 1 if failed else 0


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="s2m", description="Story-to-Media storyboard generator")
    parser.add_argument("--story", help="Run headless with this story text")
    parser.add_argument("--scenes", type=int, default=None, help="Number of scenes to plan")
    parser.add_argument("--ratio", default=None, help="Aspect ratio: 1:1, 16:9, 9:16, 3:4 or 4:3")
    parser.add_argument("--images", action="store_true", help="Also render every scene and the thumbnail")
    parser.add_argument("--test", action="store_true", help="Placeholder prompts and images, no API calls")
    return parser.parse_args(argv)


def main() -> None:
    """Launch S2M: TUI by default, headless with --story."""
    _setup_logging()

    args = _parse_args(sys.argv[1:])

    # Headless mode: python -m s2m.main --story "..." [--images] [--test]
    if args.story is not None:
        try:
            code = asyncio.run(_run_headless(args))
        except ValueError as e:
            print(f"Error: {e}")
            code = 1
        sys.exit(code)

    from .tui import StoryboardApp

    app = StoryboardApp(use_placeholders=args.test)
    app.run()


if __name__ == "__main__":
    main()
