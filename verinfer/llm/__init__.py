"""
LLM Provider — Abstract Interface

Inference generation only needs text in, text out. Providers
implement generate(); generate_many() fans prompts out concurrently.
Select the provider with VERINFER_LLM_PROVIDER.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional, Sequence


class LLMProvider(ABC):
    """Abstract base for LLM providers."""

    name: str = "base"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
    ) -> str:
        """Generate a text response from the LLM."""
        ...

    async def generate_many(
        self,
        prompts: Sequence[str],
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
    ) -> list[str]:
        """
        Run several prompts concurrently. Results keep prompt order;
        the first failure propagates.
        """
        return list(await asyncio.gather(*[
            self.generate(p, system_instruction=system_instruction, temperature=temperature)
            for p in prompts
        ]))
