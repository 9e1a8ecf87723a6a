"""Canned generation output for the fixture backend.

Each builder returns a fresh, structurally valid document of the shape the
matching agent's prompt asks for. Ids carry a running counter so repeated
calls produce distinct artifacts.
"""

import base64
import itertools
from typing import Any, Callable

from lifepath.llm.backends import ImageResult
from lifepath.sessions.schemas import utcnow_iso

# 1x1 transparent PNG
PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

SEGMENT_YEARS = 10


class FixtureFactory:
    """Builds canned documents keyed by agent id."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._builders: dict[str, Callable[[int], Any]] = {
            "historical_context": self.historical_context,
            "persona_generation": self.persona_options,
            "lifeline_generation": self.lifeline,
            "pivotal_moment_generation": self.pivotal_moment,
            "image_prompt_generation": self.image_prompt,
            "location_resolution": self.location,
        }

    def text_for(self, agent_id: str) -> Any:
        builder = self._builders.get(agent_id)
        if builder is None:
            return {}
        return builder(next(self._counter))

    def image_for(self, prompt: str) -> ImageResult:
        return ImageResult(
            data=PLACEHOLDER_PNG,
            mime_type="image/png",
            revised_prompt=f"Placeholder image for: {prompt[:200]}",
        )

    @staticmethod
    def historical_context(n: int) -> dict[str, Any]:
        return {
            "country": "Republic of Florence",
            "description": "A wealthy city-state on the Arno, centre of banking and the arts.",
            "political_situation": {
                "rulers": ["Cosimo de' Medici"],
                "governance": "Oligarchic republic",
                "details": "The Medici govern informally through allies in the Signoria.",
            },
            "religion": {
                "dominant": "Roman Catholicism",
                "cultural_background": "Confraternities and guild patronage shape civic religion.",
            },
            "social_structure": "Patrician families, guild masters, artisans and day labourers.",
            "economy": "Wool and silk cloth, international banking.",
            "conflicts": ["Rivalry with Milan"],
            "cultural_highlights": ["Brunelleschi's dome", "Humanist scholarship"],
            "additional_context": {},
        }

    @staticmethod
    def persona_options(n: int) -> dict[str, Any]:
        titles = [
            ("Wool Merchant's Son", "merchant", "comfortable", "male"),
            ("Dyer's Daughter", "artisan", "modest", "female"),
            ("Notary's Child", "professional", "comfortable", "female"),
            ("Day Labourer's Son", "labourer", "poor", "male"),
        ]
        options = []
        for i, (title, social_class, wealth, gender) in enumerate(titles, start=1):
            options.append({
                "id": f"persona-{i}",
                "title": title,
                "family_background": {
                    "social_class": social_class,
                    "occupation": social_class,
                    "wealth": wealth,
                    "family_size": 5,
                    "parental_status": "Both parents alive",
                    "location": "Oltrarno",
                },
                "birth_circumstances": "Born at home in early spring.",
                "initial_attributes": {
                    "gender": gender,
                    "ethnicity": "Tuscan",
                    "physical_traits": ["dark hair"],
                    "early_childhood": "Grew up among the workshops of the quarter.",
                },
                "probability": 25,
                "opportunities": ["Guild apprenticeship"],
                "challenges": ["Plague outbreaks"],
            })
        return {"options": options, "timestamp": utcnow_iso()}

    @staticmethod
    def lifeline(n: int) -> dict[str, Any]:
        return {
            "id": f"lifeline-{n}",
            "start_age": 0,
            "end_age": SEGMENT_YEARS,
            "narrative": "Childhood passed between the family workshop and the parish school.",
            "events": [
                {
                    "age": 7,
                    "year": "1441",
                    "event": "Began helping in the workshop",
                    "impact": "moderate",
                    "location": "Florence",
                },
            ],
            "character_development": {
                "skills": ["reading"],
                "relationships": ["a neighbour's apprentice"],
                "beliefs": ["loyalty to family"],
                "reputation": "A diligent child",
                "physical_condition": "Healthy",
                "mental_state": "Curious",
            },
            "pivotal_moment_reached": True,
            "image_prompt": "A child carrying bolts of cloth across a Florentine courtyard.",
        }

    @staticmethod
    def pivotal_moment(n: int) -> dict[str, Any]:
        return {
            "id": f"pivotal-moment-{n}",
            "age": SEGMENT_YEARS,
            "year": "1444",
            "title": "An Offer of Apprenticeship",
            "situation": "A master goldsmith offers to take the child on.",
            "context": "The family workshop is struggling.",
            "stakes": "The family's income against the child's future.",
            "choices": [
                {
                    "id": f"choice-{i}",
                    "title": title,
                    "description": title,
                    "immediate_consequences": ["The family reacts"],
                    "potential_outcomes": ["A different trade"],
                    "risk": risk,
                    "alignment": ["ambition"],
                }
                for i, (title, risk) in enumerate(
                    [("Accept the offer", "medium"), ("Stay with the family", "low"),
                     ("Run away to Pisa", "high")],
                    start=1,
                )
            ],
            "time_constraint": "The master wants an answer by Sunday.",
            "influencing_factors": ["Family debt"],
            "character_died": False,
            "image_prompt": "A goldsmith's shop lit by a single window.",
        }

    @staticmethod
    def image_prompt(n: int) -> dict[str, Any]:
        return {
            "id": f"prompt-{n}",
            "prompt": (
                "Documentary photograph of a narrow Florentine street in 1444, "
                "wool merchants in belted tunics, morning light on stone walls."
            ),
            "source_type": "context",
            "source_id": "",
            "timestamp": utcnow_iso(),
        }

    @staticmethod
    def location(n: int) -> dict[str, Any]:
        return {
            "area": "Tuscany",
            "country": "Republic of Florence",
            "settlement": "Florence",
            "confidence": 0.8,
            "notes": None,
        }
