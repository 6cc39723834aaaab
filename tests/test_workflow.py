import asyncio

from s2m.config import Config
from s2m.errors import AUTH_MESSAGE, GENERIC_MESSAGE, VALIDATION_MESSAGE, EmptyResponse, NoImageReturned
from s2m.promptgen import StoryResponse
from s2m.state import AspectRatio, SessionStore
from s2m.workflow import StoryboardController, initial_state


class FakePlanner:
    """Stands in for the text model; records every call."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, story, scene_count, existing_count, config):
        self.calls.append((story, scene_count, existing_count))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeRenderer:
    """Stands in for the image model; per-prompt failures and gates."""

    def __init__(self, fail=(), gates=None):
        self.fail = set(fail)
        self.gates = gates or {}
        self.calls = []

    async def __call__(self, prompt, aspect_ratio, config):
        self.calls.append((prompt, aspect_ratio))
        if prompt in self.gates:
            await self.gates[prompt].wait()
        if prompt in self.fail:
            raise NoImageReturned("no image")
        return f"data:image/png;base64,{len(self.calls)}"


class FakeKeySelector:
    def __init__(self, has_key=True):
        self._has_key = has_key
        self.requests = 0

    def has_key(self):
        return self._has_key

    def request_key(self):
        self.requests += 1
        self._has_key = True


def _response(n, thumbnail="hero", prefix="shot"):
    return StoryResponse(scenes=[f"{prefix} {i + 1}" for i in range(n)], thumbnail=thumbnail)


def _controller(planner=None, renderer=None, selector=None, story="A lone wanderer finds a garden"):
    config = Config(gemini_api_key="test-key")
    store = SessionStore(initial_state(config, selector))
    controller = StoryboardController(
        store, config,
        key_selector=selector,
        prompt_fn=planner or FakePlanner(),
        image_fn=renderer or FakeRenderer(),
    )
    controller.set_story(story)
    return controller


def test_generate_then_add_more():
    planner = FakePlanner(_response(3, "hero one"), _response(2, "hero two", prefix="more"))
    controller = _controller(planner)

    controller.set_scene_count(3)
    state = asyncio.run(controller.generate_plan())
    assert [s.index for s in state.scenes] == [1, 2, 3]
    assert state.thumbnail_prompt == "hero one"
    assert not state.is_generating_prompts
    first_three = state.scenes

    controller.set_scene_count(2)
    state = asyncio.run(controller.generate_plan(add_more=True))
    assert [s.index for s in state.scenes] == [1, 2, 3, 4, 5]
    assert state.scenes[:3] == first_three
    assert [s.prompt for s in state.scenes[3:]] == ["more 1", "more 2"]
    assert state.thumbnail_prompt == "hero two"
    assert planner.calls == [
        ("A lone wanderer finds a garden", 3, 0),
        ("A lone wanderer finds a garden", 2, 3),
    ]
    assert len({s.id for s in state.scenes}) == 5


def test_regenerate_discards_previous_scenes():
    planner = FakePlanner(_response(2), _response(2, prefix="again"))
    renderer = FakeRenderer()
    controller = _controller(planner, renderer)

    async def run():
        state = await controller.generate_plan()
        await controller.generate_scene_image(state.scenes[0].id)
        old_ids = {s.id for s in controller.state.scenes}
        state = await controller.generate_plan()
        return old_ids, state

    old_ids, state = asyncio.run(run())
    assert [s.index for s in state.scenes] == [1, 2]
    assert not old_ids & {s.id for s in state.scenes}
    assert all(s.image_url is None for s in state.scenes)
    assert planner.calls[1][2] == 0


def test_blank_story_makes_no_call():
    planner = FakePlanner()
    controller = _controller(planner, story="   \n ")
    state = asyncio.run(controller.generate_plan())
    assert planner.calls == []
    assert state.error == VALIDATION_MESSAGE
    assert state.scenes == ()
    assert not state.is_generating_prompts


def test_plan_failure_leaves_scenes_untouched():
    planner = FakePlanner(_response(2, "hero"), EmptyResponse("nothing"))
    controller = _controller(planner)
    before = asyncio.run(controller.generate_plan())

    after = asyncio.run(controller.generate_plan(add_more=True))
    assert after.scenes == before.scenes
    assert after.thumbnail_prompt == "hero"
    assert after.error == GENERIC_MESSAGE
    assert not after.is_generating_prompts
    assert after.has_valid_key


def test_auth_failure_flags_key_and_reprompts():
    selector = FakeKeySelector(has_key=True)
    planner = FakePlanner(
        RuntimeError("404 NOT_FOUND. Requested entity was not found."),
        _response(1),
    )
    controller = _controller(planner, selector=selector)

    state = asyncio.run(controller.generate_plan())
    assert state.error == AUTH_MESSAGE
    assert not state.has_valid_key
    assert selector.requests == 0

    state = asyncio.run(controller.generate_plan())
    assert selector.requests == 1
    assert state.has_valid_key
    assert state.error is None
    assert len(state.scenes) == 1


def test_unset_api_key_is_reported_as_auth_failure():
    config = Config(gemini_api_key="")
    store = SessionStore(initial_state(config))
    controller = StoryboardController(store, config)
    controller.set_story("A lone wanderer finds a garden")

    state = asyncio.run(controller.generate_plan())
    assert state.error == AUTH_MESSAGE
    assert not state.has_valid_key
    assert state.scenes == ()
    assert not state.is_generating_prompts


def test_missing_key_requests_selection_before_plan():
    selector = FakeKeySelector(has_key=False)
    controller = _controller(FakePlanner(_response(1)), selector=selector)
    assert not controller.state.has_valid_key
    state = asyncio.run(controller.generate_plan())
    assert selector.requests == 1
    assert state.has_valid_key


def test_plan_request_while_in_flight_is_ignored():
    gate = asyncio.Event()

    class SlowPlanner(FakePlanner):
        async def __call__(self, *args):
            await gate.wait()
            return await super().__call__(*args)

    planner = SlowPlanner(_response(2))
    controller = _controller(planner)

    async def run():
        first = asyncio.create_task(controller.generate_plan())
        await asyncio.sleep(0)
        assert controller.state.is_generating_prompts
        await controller.generate_plan(add_more=True)
        gate.set()
        return await first

    state = asyncio.run(run())
    assert len(planner.calls) == 1
    assert len(state.scenes) == 2


def test_scene_image_failure_is_isolated():
    gate = asyncio.Event()
    renderer = FakeRenderer(fail={"shot 1"}, gates={"shot 1": gate})
    controller = _controller(FakePlanner(_response(3)), renderer)
    violations = []

    def check(state):
        for s in state.scenes:
            if s.image_url and s.is_generating_image:
                violations.append(s)

    controller.store.subscribe(check)

    async def run():
        state = await controller.generate_plan()
        a, b, _ = (s.id for s in state.scenes)
        task_a = asyncio.create_task(controller.generate_scene_image(a))
        await asyncio.sleep(0)
        assert controller.state.scenes[0].is_generating_image
        await controller.generate_scene_image(b)
        # b finished while a is still in flight
        assert controller.state.scenes[0].is_generating_image
        gate.set()
        await task_a
        return controller.state

    state = asyncio.run(run())
    s1, s2, s3 = state.scenes
    assert s1.image_url is None and not s1.is_generating_image
    assert s2.image_url and not s2.is_generating_image
    assert s3.status == "pending"
    assert state.error is None
    assert violations == []


def test_scene_image_is_idempotent():
    renderer = FakeRenderer()
    controller = _controller(FakePlanner(_response(1)), renderer)

    async def run():
        state = await controller.generate_plan()
        scene_id = state.scenes[0].id
        first = await controller.generate_scene_image(scene_id)
        second = await controller.generate_scene_image(scene_id)
        return first, second

    first, second = asyncio.run(run())
    assert first.image_url == second.image_url
    assert len(renderer.calls) == 1


def test_concurrent_requests_for_same_scene_render_once():
    gate = asyncio.Event()
    renderer = FakeRenderer(gates={"shot 1": gate})
    controller = _controller(FakePlanner(_response(1)), renderer)

    async def run():
        state = await controller.generate_plan()
        scene_id = state.scenes[0].id
        task = asyncio.create_task(controller.generate_scene_image(scene_id))
        await asyncio.sleep(0)
        await controller.generate_scene_image(scene_id)
        gate.set()
        await task

    asyncio.run(run())
    assert len(renderer.calls) == 1


def test_unknown_scene_is_noop():
    renderer = FakeRenderer()
    controller = _controller(renderer=renderer)
    assert asyncio.run(controller.generate_scene_image("missing")) is None
    assert renderer.calls == []


def test_aspect_ratio_applies_to_later_images_only():
    renderer = FakeRenderer()
    controller = _controller(FakePlanner(_response(2)), renderer)

    async def run():
        state = await controller.generate_plan()
        await controller.generate_scene_image(state.scenes[0].id)
        before = controller.state.scenes[0]
        controller.set_aspect_ratio("9:16")
        await controller.generate_scene_image(state.scenes[1].id)
        return before, controller.state

    before, state = asyncio.run(run())
    assert state.scenes[0] == before
    assert state.scenes[0].aspect_ratio is AspectRatio.LANDSCAPE
    assert state.scenes[1].aspect_ratio is AspectRatio.PORTRAIT
    assert [ratio for _, ratio in renderer.calls] == [AspectRatio.LANDSCAPE, AspectRatio.PORTRAIT]


def test_thumbnail_image_guards_and_failure():
    renderer = FakeRenderer(fail={"hero"})
    controller = _controller(FakePlanner(_response(1, "hero")), renderer)

    async def run():
        await controller.generate_plan()
        return await controller.generate_thumbnail_image()

    state = asyncio.run(run())
    assert state.thumbnail_url is None
    assert not state.is_generating_thumbnail
    assert state.error is None

    renderer.fail.clear()
    state = asyncio.run(controller.generate_thumbnail_image())
    assert state.thumbnail_url
    assert state.thumbnail_aspect_ratio is AspectRatio.LANDSCAPE
    asyncio.run(controller.generate_thumbnail_image())
    assert len(renderer.calls) == 2


def test_concurrent_thumbnail_requests_render_once():
    gate = asyncio.Event()
    renderer = FakeRenderer(gates={"hero": gate})
    controller = _controller(FakePlanner(_response(1, "hero")), renderer)

    async def run():
        await controller.generate_plan()
        task = asyncio.create_task(controller.generate_thumbnail_image())
        await asyncio.sleep(0)
        assert controller.state.is_generating_thumbnail
        await controller.generate_thumbnail_image()
        gate.set()
        return await task

    state = asyncio.run(run())
    assert len(renderer.calls) == 1
    assert state.thumbnail_url
    assert not state.is_generating_thumbnail


def test_thumbnail_without_prompt_is_noop():
    renderer = FakeRenderer()
    controller = _controller(renderer=renderer)
    asyncio.run(controller.generate_thumbnail_image())
    assert renderer.calls == []


def test_generate_all_images():
    renderer = FakeRenderer(fail={"shot 2"})
    controller = _controller(FakePlanner(_response(3, "hero")), renderer)

    async def run():
        await controller.generate_plan()
        return await controller.generate_all_images()

    state = asyncio.run(run())
    assert [s.status for s in state.scenes] == ["ready", "pending", "ready"]
    assert state.thumbnail_url
    assert len(renderer.calls) == 4


def test_placeholder_mode_needs_no_network():
    config = Config(gemini_api_key="")
    store = SessionStore(initial_state(config))
    controller = StoryboardController(store, config, use_placeholders=True)
    controller.set_story("A lone wanderer finds a garden. It glows at night.")
    controller.set_scene_count(2)

    async def run():
        await controller.generate_plan()
        return await controller.generate_all_images()

    state = asyncio.run(run())
    assert len(state.scenes) == 2
    assert all(s.image_url.startswith("data:image/png;base64,") for s in state.scenes)
    assert state.thumbnail_url.startswith("data:image/png;base64,")
