from gemini_core.providers.registry import (
    DEFAULT_CAPABILITIES,
    ModelCapabilities,
    PresetCapabilityResolver,
    get_preset_capabilities,
)


def test_exact_and_prefix_match():
    assert get_preset_capabilities("gemini-2.5-flash").thinking_config_type == "budget"
    assert get_preset_capabilities("models/gemini-3-pro-preview").thinking_config_type == "level"
    lite = get_preset_capabilities("gemini-2.5-flash-lite-preview-06-17")
    assert lite.thinking_budget_config.default_value == 0
    image = get_preset_capabilities("gemini-2.5-flash-image-preview")
    assert image.supports_image_generation
    assert not image.supports_image_size


def test_unknown_model_gets_defaults():
    assert get_preset_capabilities("gpt-4o") is DEFAULT_CAPABILITIES
    assert get_preset_capabilities("") is DEFAULT_CAPABILITIES


def test_resolver_overrides_and_redirects():
    custom = ModelCapabilities(supports_thought_summary=True)
    resolver = PresetCapabilityResolver(
        overrides={"mine": custom},
        redirects={"alias": "mine", "painter": "gemini-3-pro-image-preview"},
    )
    assert resolver.resolve("mine") is custom
    assert resolver.resolve("alias") is custom
    assert resolver.resolve("painter").supports_image_generation


def test_resolver_redirect_loop_terminates():
    resolver = PresetCapabilityResolver(redirects={"a": "b", "b": "a"})
    assert resolver.resolve("a") is DEFAULT_CAPABILITIES
