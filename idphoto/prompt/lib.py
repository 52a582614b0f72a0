"""PromptBuilder for ID-photo generation prompts.

Renders one of two instruction templates: photo retouching for a real
photograph, or cartoon-to-realism conversion. Mode flags select the
expression, accessory and character-identification instructions.
"""

from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

PRESERVE_EXPRESSION = "preserve"


class PromptConfig(BaseModel):
    """User choices that shape the prompt.

    Attributes:
        expression: "preserve" to keep the original expression, otherwise
            a phrase completing "The person must have ...".
        remove_glasses: Remove glasses from the result.
        cartoon_mode: Treat the source as a cartoon/anime character.
        cartoon_description: Optional hint identifying the character.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    expression: str = Field(default=PRESERVE_EXPRESSION, min_length=1)
    remove_glasses: bool = False
    cartoon_mode: bool = False
    cartoon_description: str = ""

    @field_validator("expression")
    @classmethod
    def _normalize_expression(cls, value: str) -> str:
        if value.lower() == PRESERVE_EXPRESSION:
            return PRESERVE_EXPRESSION
        return value


PHOTO_TEMPLATE = """**Image Modification Task:** Your base is a provided photograph. Your goal is to adjust this image to meet professional 2-inch ID photo standards.

**Primary Goal:** Make the person suitable for an official ID photo by ensuring key facial features are visible, correcting posture, and ensuring clothing is appropriate.

**Strict Rules:**
1.  **Preserve Identity & Hairstyle:** You MUST perfectly preserve the person's face, likeness, identity, and **original hairstyle** from the base image. Do NOT change their hair color/style.
2.  **Clothing Modification:** Your first priority is to use the person's original clothing. If the original clothing is unsuitable for a formal ID photo (e.g., a tank top, a very low-cut shirt, a shirt with large logos, or a hoodie), you MUST realistically modify it into a more appropriate, simple top (like a crew-neck shirt or a simple blouse), preserving the original color and texture where possible. If the original clothing is completely absent or impossible to adapt, generate a standard, neutral-colored collared shirt or blouse.
3.  **Automatic Medical Device Removal:** First, carefully examine the person in the photo. If you detect any medical tubes or lines on their face (such as a nasogastric tube or oxygen cannula), you MUST remove them completely. Realistically reconstruct the underlying facial features (like the nose and cheek) to look natural and complete, as if the device was never there. If no such devices are present, ignore this rule.
4.  **Automatic Facial Reconstruction:** Next, analyze the face for any obstructions. If the person's mouth and nose are covered by a mask, or if their eyes are obscured by heavy sunglasses, digital mosaics, or other forms of censorship, you MUST attempt to realistically reconstruct the hidden facial features. Simulate a natural-looking nose, mouth, and/or eyes that are consistent with the visible parts of the face. When reconstructing a face from a mosaic or blur, prioritize using East Asian facial features. The goal is to create a complete, unobstructed portrait. If the face is already clear, ignore this rule.
5.  **Expose Facial Features:** You MUST ensure the person's full face, both eyes, and both ears are clearly and fully visible. If the hair in the original photo is slightly covering the eyes or ears, you must subtly adjust the hair (e.g., tuck it behind the ears) to expose these features naturally.
6.  **Accessories:** {glasses}
7.  **Pose & Posture Correction:** You MUST completely disregard any body pose, gestures (like hand signs), or head tilting from the original photo. The final image must depict the person with perfect posture: standing perfectly straight, facing the camera directly, with their head held up, chin level, and shoulders back and squared. The pose should be static and neutral, suitable for an official ID.
8.  **Expression:** {expression}
9.  **Studio Environment & Background:** The entire scene must be re-rendered to be indistinguishable from a high-end professional **half-body portrait (from the chest up)** taken in a real-world photography studio. The final image must be a vertical portrait with an aspect ratio of approximately 7:9, suitable for a 2-inch ID photo.
    *   **Background Replacement**: Completely replace the original background with a seamless, plain, solid **pure white** background.
    *   **Lighting Correction**: Re-light the person with a professional three-point studio lighting setup. This should correct any harsh or uneven lighting from the original photo, creating soft, flattering light on the face, defining their features, and adding a subtle rim light to separate them from the background.
    *   **Seamless Integration**: The integration must be absolutely seamless. Create subtle, soft cast shadows on the background where appropriate to ground the subject in the environment. The final image MUST NOT look like a digital cutout placed on a white background. The entire scene must feel like a single, cohesive photograph.
"""

CARTOON_TEMPLATE = """**Primary Task: Cartoon to Realism Conversion for a 2-inch ID Photo.**
Your base is a cartoon/anime image. Your goal is to generate a new, photorealistic image of what this character would look like as a real human, styled as a professional ID photo.

**Strict Rules:**
1.  **Preserve Core Features**: You MUST preserve the character's core recognizable features (like hair color, eye color) but render them in a realistic, human style.
2.  **Clothing**: Interpret the character's clothing and hairstyle from the cartoon and render a realistic, simple version suitable for an ID photo. If the original clothing is overly complex or inappropriate (e.g., armor, costume), generate a simple, professional-looking top like a collared shirt or blouse.
3.  **Expose Facial Features**: In the final realistic portrait, you MUST ensure the person's full face, both eyes, and both ears are clearly and fully visible.
4.  **Medical Devices**: If the cartoon character appears to have medical tubes (like a nasogastric tube), do NOT include them in the final realistic portrait.
5.  **Facial Reconstruction**: If the cartoon character's face is partially obscured (e.g., by a mask, heavy shadows, or censorship), you MUST imagine and render a complete, realistic, and unobstructed human face for the final portrait. When reconstructing a face from a mosaic or blur, prioritize using East Asian facial features. Do not include the obstruction in the realistic version.
6.  **Accessories**: {glasses}
7.  **Character Identification**: {character}
8.  **Style & Framing**: Create a high-quality, **photorealistic**, front-facing **half-body portrait (from the chest up)** of the character as a real human. The final image must be a vertical portrait with an aspect ratio of approximately 7:9, suitable for a 2-inch ID photo.
9.  **Pose**: The person must have excellent posture: standing perfectly straight, facing forward, with head held up, chin level, and shoulders back and squared. The pose should be static and neutral, suitable for an official ID.
10. **Expression**: {expression}
11. **Studio Environment**: The final image must be indistinguishable from a high-end professional headshot taken in a real-world photography studio.
    *   **Background**: Place the person against a seamless, plain, solid **pure white** background.
    *   **Lighting**: Re-light the person with a professional three-point studio lighting setup. This should create soft, flattering light on the face, define their features, and add a subtle rim light to separate them from the background.
    *   **Integration**: The integration must be seamless. Create subtle, soft cast shadows on the background where appropriate to ground the subject in the environment. The final image MUST NOT look like a digital cutout placed on a white background. The entire scene must feel like a single, cohesive photograph.
"""

PRESERVE_INSTRUCTION = (
    "You MUST preserve the exact same facial expression from the original "
    "photo. Do NOT change it."
)

PHOTO_REMOVE_GLASSES = (
    "The person may be wearing glasses in the original photo. You MUST remove "
    "the glasses completely and realistically reconstruct the eye area "
    "underneath."
)
PHOTO_KEEP_GLASSES = "If the person is wearing accessories like glasses, keep them."

CARTOON_REMOVE_GLASSES = (
    "If the character is wearing glasses, do NOT include them in the final "
    "realistic image."
)
CARTOON_KEEP_GLASSES = (
    "If the character is wearing accessories like glasses, render a realistic "
    "version of them."
)

CARTOON_ANALYZE = "Analyze the image to identify the character's key features."


class PromptBuilder:
    """Builds generation prompts from a PromptConfig.

    Example:
        >>> builder = PromptBuilder()
        >>> prompt = builder.build(PromptConfig(remove_glasses=True))
    """

    def build(self, config: PromptConfig | None = None) -> str:
        """Render the prompt for the given choices.

        Args:
            config: Prompt options. Defaults to a plain photo retouch.

        Returns:
            Prompt text.
        """
        config = config or PromptConfig()
        expression = self._expression_instruction(config.expression)

        if config.cartoon_mode:
            return CARTOON_TEMPLATE.format(
                glasses=(
                    CARTOON_REMOVE_GLASSES
                    if config.remove_glasses
                    else CARTOON_KEEP_GLASSES
                ),
                character=self._character_instruction(config.cartoon_description),
                expression=expression,
            )

        return PHOTO_TEMPLATE.format(
            glasses=(
                PHOTO_REMOVE_GLASSES if config.remove_glasses else PHOTO_KEEP_GLASSES
            ),
            expression=expression,
        )

    def factory(self, config: PromptConfig | None = None) -> Callable[[], str]:
        """Return a zero-argument callable rendering the prompt on demand."""
        return lambda: self.build(config)

    @staticmethod
    def _expression_instruction(expression: str) -> str:
        if expression == PRESERVE_EXPRESSION:
            return PRESERVE_INSTRUCTION
        return f"The person must have {expression}."

    @staticmethod
    def _character_instruction(description: str) -> str:
        if description:
            return (
                "Use this description to guide your interpretation: "
                f"'{description}'."
            )
        return CARTOON_ANALYZE


__all__ = [
    "PRESERVE_EXPRESSION",
    "PromptBuilder",
    "PromptConfig",
]
