"""Build the ordered, bounded list of preprocessing passes for one image.

The base chain runs luma → adaptive threshold (small, medium, large) →
light denoise, plus an optional color-hint binarization. Each step works
on the previous step's output, and each step can be followed by an
inverted copy. Images with transparent pixels are first flattened onto
white and onto black, and the chain runs from both.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from models import DecodeOptions
from pixels import PixelBuffer
from transforms import (
    adaptive_threshold,
    color_distance_threshold,
    color_hint_binarize,
    denoise_light,
    flatten_transparent,
    grayscale,
    has_transparency,
    invert,
)

logger = logging.getLogger("qrscan")

INVERT_SUFFIX = "+invert"
FLATTEN_BLACK_PREFIX = "flatten-black+"


@dataclass(frozen=True)
class Pass:
    name: str
    buffer: PixelBuffer


@dataclass(frozen=True)
class ChainStep:
    name: str
    apply: Callable[[PixelBuffer], PixelBuffer]


def _threshold_step(preset: str) -> ChainStep:
    return ChainStep(
        name=f"adaptive-{preset}",
        apply=lambda buf: adaptive_threshold(grayscale(buf), preset),
    )


def _color_hint_step(options: DecodeOptions) -> ChainStep | None:
    hint = options.color_hint
    if hint is None or not hint.complete:
        return None
    if hint.method == "distance":
        return ChainStep(
            name="color-distance",
            apply=lambda buf: color_distance_threshold(buf, hint.foreground, hint.background),
        )
    return ChainStep(
        name="color-hint",
        apply=lambda buf: color_hint_binarize(buf, hint.foreground, hint.background),
    )


def chain_steps(options: DecodeOptions) -> list[ChainStep]:
    """The base transform chain, in the order it is applied."""
    steps = [
        ChainStep("luma", grayscale),
        _threshold_step("small"),
        _threshold_step("medium"),
        _threshold_step("large"),
        ChainStep("denoise", denoise_light),
    ]
    hint_step = _color_hint_step(options)
    if hint_step is not None:
        steps.append(hint_step)
    return steps


class PassBudget:
    """Accumulates passes up to a fixed count.

    Earlier offers win. Buffers are only produced for offers that fit, and a
    name that is already present is not added twice.
    """

    def __init__(self, limit: int):
        self._limit = max(0, limit)
        self._passes: list[Pass] = []
        self._names: set[str] = set()

    @property
    def full(self) -> bool:
        return len(self._passes) >= self._limit

    def offer(self, name: str, produce: Callable[[], PixelBuffer]) -> bool:
        if self.full or name in self._names:
            return False
        self._passes.append(Pass(name, produce()))
        self._names.add(name)
        return True

    @property
    def passes(self) -> list[Pass]:
        return list(self._passes)


def _run_chain(
    budget: PassBudget,
    start: PixelBuffer,
    steps: list[ChainStep],
    try_invert: bool,
    prefix: str = "",
) -> None:
    current = start
    for step in steps:
        if budget.full:
            break
        current = step.apply(current)
        name = prefix + step.name
        budget.offer(name, lambda buf=current: buf)
        if try_invert:
            budget.offer(name + INVERT_SUFFIX, lambda buf=current: invert(buf))


def build_passes(source: PixelBuffer, options: DecodeOptions | None = None) -> list[Pass]:
    """Return the passes to try, best candidates first.

    At most options.effective_max_passes passes are returned and their names
    are unique.
    """
    if options is None:
        options = DecodeOptions()
    budget = PassBudget(options.effective_max_passes)
    steps = chain_steps(options)
    start = source

    transparent = has_transparency(source)
    if transparent:
        flat_white = flatten_transparent(source, "white")
        flat_black = flatten_transparent(source, "black")
        budget.offer("flatten-white", lambda: flat_white)
        budget.offer("flatten-black", lambda: flat_black)

        # Light modules on a transparent background only show up on black
        if not budget.full:
            black_luma = grayscale(flat_black)
            budget.offer(FLATTEN_BLACK_PREFIX + "luma", lambda: black_luma)
            if options.try_invert:
                budget.offer(FLATTEN_BLACK_PREFIX + "luma" + INVERT_SUFFIX, lambda: invert(black_luma))
        start = flat_white

    _run_chain(budget, start, steps, options.try_invert)

    if transparent and not budget.full:
        _run_chain(budget, flat_black, steps, options.try_invert, prefix=FLATTEN_BLACK_PREFIX)

    passes = budget.passes
    logger.debug(
        "Built %d passes (budget %d, transparent=%s): %s",
        len(passes),
        options.effective_max_passes,
        transparent,
        ", ".join(p.name for p in passes),
    )
    return passes
