"""Prompt compilation for the two generation modes.

The compiler is pure: the same mode, assets and ``enforce_change`` flag always
produce the same payload. Wire encoding (base64, JSON field names) is left to
the provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from headshot.media.assets import ImageAsset


SYSTEM_PROMPT = """Role: Two-Image Guided Portrait Generator

You will always receive exactly TWO inputs:
1) SUBJECT_IMAGE (the person to keep)
2) STYLE_IMAGE (the outfit/style/background to borrow)

Goal:
Generate ONE new, photorealistic image that preserves the SUBJECT_IMAGE person's identity while transferring the outfit/style cues from STYLE_IMAGE.

Hard rules:
- Keep the SUBJECT's facial identity (face shape, features, skin tone, hairline, glasses/beard if present) and body proportions. Do NOT copy the STYLE person's face or identity.
- Transfer from STYLE_IMAGE: outfit design (type, color palette, fabric, pattern, fit), tie/shirt/lapels/accessories, grooming, pose/angle, lighting, and background mood.
- Do NOT change SUBJECT body shape or anatomy. Maintain original shoulder width, torso proportions, and head-to-body ratio. No muscle/weight alterations.
- Pose may be adapted to be similar to STYLE_IMAGE, but must remain plausible for the SUBJECT with consistent limb lengths and perspective.
- Preserve natural skin texture and micro-details (pores, moles, lines). Avoid plastic smoothing or over-retouching.
- Preserve accessories that define identity (glasses, beard/mustache, earrings) unless the user explicitly asks to remove them.
- The generated face must achieve a high perceived identity match to SUBJECT. If uncertain, bias stronger toward SUBJECT features rather than style.
- Never return or collage either input. Always synthesize a NEW image.
- No text, logos, watermarks, or artifacts. Natural lighting, realistic skin texture, correct hands and buttons, clean edges.
- Default to chest/waist-up portrait, eye-level camera, neutral expression, unless user specifies otherwise.
- If elements conflict, SUBJECT identity wins; style is adapted to fit SUBJECT.
- No explicit, violent, or misleading content; no recreation of a public figure's likeness from STYLE_IMAGE.

Output:
- Exactly one high-resolution, photorealistic portrait (no borders).

Do not return either input image unchanged. Always produce a newly rendered portrait that is visually distinct while preserving SUBJECT identity."""

_IDENTITY_CLAUSE = "Preserve facial identity, natural skin tone, and realistic features."

STYLE_PROMPTS: Dict[str, str] = {
    "corporate": (
        f"Generate a professional corporate headshot from this image. {_IDENTITY_CLAUSE} "
        "Create a neutral light background (white, light grey, or soft gradient), formal attire "
        "(suit, shirt, tie optional), natural lighting with clear facial features, confident but "
        "approachable expression, and a clean, minimalistic look suitable for corporate profiles."
    ),
    "creative": (
        f"Generate a creative professional headshot from this image. {_IDENTITY_CLAUSE} "
        "Create a background with subtle textures or muted colors, smart-casual attire (blazers, "
        "shirts, minimal accessories), slight smile with approachable expression, modern lighting "
        "with a soft glow, conveying creativity, energy, and professionalism without looking stiff."
    ),
    "executive": (
        f"Generate an executive portrait from this image. {_IDENTITY_CLAUSE} "
        "Create a high-end professional tone with premium, elegant background (dark gradient or "
        "subtle office backdrop), formal attire (suit, tie, optional lapel pin), confident commanding "
        "expression, professional lighting with soft shadows, suitable for corporate leadership."
    ),
    "medical": (
        f"Generate a medical professional headshot from this image. {_IDENTITY_CLAUSE} "
        "Create a white or soft neutral background, lab coat or medical attire, soft natural "
        "lighting, gentle approachable and trustworthy expression, suitable for dermatologists and "
        "healthcare professionals."
    ),
}

DEFAULT_STYLE_PROMPT = "Generate a professional headshot from this image."

STYLE_ENFORCE_CHANGE = "Do NOT return the input image unchanged. Render a NEW portrait."

REFERENCE_BASE_INSTRUCTION = "Generate a NEW photorealistic portrait."
REFERENCE_ENFORCE_CHANGE = "Do NOT return either input unchanged."

SUBJECT_LABEL = (
    "IMAGE 1 (SUBJECT): This is the person whose face and identity MUST be preserved. "
    "Use this person's facial features, skin tone, hairline, glasses, and all distinctive characteristics."
)
SUBJECT_REINFORCEMENT = (
    "SUBJECT IDENTITY REINFORCEMENT: The face in the output MUST match the SUBJECT (IMAGE 1). "
    "Do not use any facial features from IMAGE 2."
)
REFERENCE_LABEL = (
    "IMAGE 2 (STYLE REFERENCE ONLY): Borrow ONLY the outfit (suit/shirt/tie), pose, lighting, "
    "and background. Do NOT use the face or identity from this image. "
    "The face must come from IMAGE 1 (SUBJECT)."
)


@dataclass(frozen=True)
class StyleSelect:
    style_key: str
    prompt: str = ""

    name = "style"


@dataclass(frozen=True)
class ReferenceGuided:
    prompt: str = ""

    name = "reference"


GenerationMode = Union[StyleSelect, ReferenceGuided]


@dataclass(frozen=True)
class ContentBlock:
    """One unit of a payload: instruction text, an image, or a labeled image.

    ``tag`` marks what an image contributes: ``subject`` (identity) or
    ``reference`` (style only).
    """

    text: Optional[str] = None
    image: Optional[ImageAsset] = None
    tag: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.image is not None


@dataclass(frozen=True)
class PromptPayload:
    turns: Tuple[Tuple[ContentBlock, ...], ...]
    enforce_change: bool = False
    mode: str = "style"

    @property
    def blocks(self) -> Tuple[ContentBlock, ...]:
        return tuple(block for turn in self.turns for block in turn)

    def image_blocks(self) -> Tuple[ContentBlock, ...]:
        return tuple(block for block in self.blocks if block.is_image)

    def text_blocks(self) -> Tuple[ContentBlock, ...]:
        return tuple(block for block in self.blocks if not block.is_image)

    @property
    def instruction(self) -> str:
        return self.blocks[0].text or ""

    @property
    def has_reference(self) -> bool:
        return any(block.tag == "reference" for block in self.blocks)


def _clean_prompt(prompt: Optional[str]) -> str:
    if not isinstance(prompt, str):
        return ""
    return prompt.strip()


def build_style_instruction(style_key: str, prompt: Optional[str] = None, *, enforce_change: bool = False) -> str:
    base = STYLE_PROMPTS.get((style_key or "").strip().lower(), DEFAULT_STYLE_PROMPT)
    if enforce_change:
        base = f"{base} {STYLE_ENFORCE_CHANGE}"
    extra = _clean_prompt(prompt)
    if extra:
        return f"{base}\nAdditional instructions: {extra}"
    return base


def build_reference_instruction(prompt: Optional[str] = None, *, enforce_change: bool = False) -> str:
    base = REFERENCE_BASE_INSTRUCTION
    if enforce_change:
        base = f"{base} {REFERENCE_ENFORCE_CHANGE}"
    return f"{base}\n\n{_clean_prompt(prompt)}".strip()


def compile_prompt(
    mode: GenerationMode,
    subject: ImageAsset,
    reference: Optional[ImageAsset] = None,
    *,
    enforce_change: bool = False,
) -> PromptPayload:
    """Compile the content blocks for one generation attempt.

    Style mode yields an instruction followed by the subject image. Reference
    mode yields the instruction, the subject twice (labeled, then reinforced)
    and, when a reference asset is supplied, the reference labeled as style
    only in its own turn. A missing reference degrades to subject-only.
    """

    if isinstance(mode, StyleSelect):
        turn = (
            ContentBlock(text=build_style_instruction(mode.style_key, mode.prompt, enforce_change=enforce_change)),
            ContentBlock(image=subject, tag="subject"),
        )
        return PromptPayload(turns=(turn,), enforce_change=enforce_change, mode=mode.name)

    if isinstance(mode, ReferenceGuided):
        subject_turn = (
            ContentBlock(text=build_reference_instruction(mode.prompt, enforce_change=enforce_change)),
            ContentBlock(text=SUBJECT_LABEL, image=subject, tag="subject"),
            ContentBlock(text=SUBJECT_REINFORCEMENT, image=subject, tag="subject"),
        )
        turns: Tuple[Tuple[ContentBlock, ...], ...] = (subject_turn,)
        if reference is not None:
            turns = turns + ((ContentBlock(text=REFERENCE_LABEL, image=reference, tag="reference"),),)
        return PromptPayload(turns=turns, enforce_change=enforce_change, mode=mode.name)

    raise TypeError(f"Unsupported generation mode: {type(mode).__name__}")
