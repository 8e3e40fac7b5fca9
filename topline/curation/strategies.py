"""
Retry-with-escalating-prompt control flow.

A call site declares an ordered list of PromptStrategy objects (for example
detailed -> simplified -> lite model) plus one parser and one validator.
run_strategies tries them in order, with a short backoff between attempts,
and returns the first result that parses and validates. Exhaustion raises
a GenerationError carrying every attempt's failure reason.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Type

logger = logging.getLogger(__name__)


class GenerationError(RuntimeError):
    """Every generation strategy failed for one item."""

    def __init__(self, message: str, failures: Optional[List[str]] = None):
        super().__init__(message)
        self.failures = failures or []


class ValidationFailed(ValueError):
    """A parsed response did not pass the call site's validator."""


@dataclass(frozen=True)
class PromptStrategy:
    """One attempt: a prompt builder plus the model settings to run it with.

    `build(request)` returns (system_prompt, user_prompt).
    """
    name: str
    build: Callable[[Any], Tuple[str, str]]
    lite: bool = False
    temperature: float = 0.7
    max_tokens: int = 500


async def run_strategies(
    llm,
    strategies: Sequence[PromptStrategy],
    request: Any,
    parse: Callable[[str], Any],
    validate: Optional[Callable[[Any], Optional[str]]] = None,
    max_attempts: int = 3,
    backoff_seconds: float = 0.5,
    label: str = "generation",
    error_cls: Type[GenerationError] = GenerationError,
) -> Tuple[Any, str]:
    """Run strategies in order until one yields a valid result.

    Args:
        llm: Object with an async `generate(prompt, system_prompt, temperature, max_tokens, lite)`
        strategies: Ordered strategies; at most `max_attempts` are tried
        request: Passed to each strategy's prompt builder
        parse: Raw text -> structured result; raising counts as a failed attempt
        validate: Returns a problem description, or None when the result is acceptable

    Returns:
        (result, strategy name)
    """
    attempts = list(strategies)[:max(1, max_attempts)]
    failures: List[str] = []

    for attempt, strategy in enumerate(attempts, 1):
        if attempt > 1 and backoff_seconds > 0:
            await asyncio.sleep(backoff_seconds * (attempt - 1))

        system_prompt, prompt = strategy.build(request)
        try:
            raw = await llm.generate(
                prompt,
                system_prompt=system_prompt,
                temperature=strategy.temperature,
                max_tokens=strategy.max_tokens,
                lite=strategy.lite,
            )
            result = parse(raw)
            if validate is not None:
                problem = validate(result)
                if problem:
                    raise ValidationFailed(problem)
        except asyncio.TimeoutError:
            failures.append(f"{strategy.name}: timeout")
            logger.warning(f"[TIMEOUT] {label} attempt {attempt}/{len(attempts)} ({strategy.name})")
            continue
        except Exception as e:
            failures.append(f"{strategy.name}: {e}")
            logger.warning(f"[RETRY] {label} attempt {attempt}/{len(attempts)} ({strategy.name}) failed: {e}")
            continue

        if attempt > 1:
            logger.info(f"[OK] {label} succeeded on attempt {attempt} ({strategy.name})")
        return result, strategy.name

    raise error_cls(f"{label}: all {len(attempts)} attempts failed", failures)
