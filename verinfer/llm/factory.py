from verinfer.llm import LLMProvider


def get_provider(provider_name: str = "anthropic") -> LLMProvider:
    """Factory — returns the configured LLM provider."""
    if provider_name == "anthropic":
        from verinfer.llm.claude import ClaudeProvider
        return ClaudeProvider()
    elif provider_name == "gemini":
        from verinfer.llm.gemini import GeminiProvider
        return GeminiProvider()
    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")
