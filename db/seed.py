"""
Persona seed data.

Personas are read-only to the pipeline; this is the one place they are written.
"""

import logging
from typing import List

from db.repository import PipelineStore
from models.schemas import Persona

logger = logging.getLogger(__name__)


PERSONAS: List[Persona] = [
    Persona(
        persona_id=None,
        name="The Overthinker",
        tagline="Analyzes every text, double-checks every move",
        description=(
            "The Overthinker approaches dating like a chess match. Every message is carefully "
            "crafted, every response is analyzed for hidden meaning."
        ),
        emoji="🧠",
        color="#8b5cf6",
        keywords=["overthinking", "texting anxiety", "what does it mean", "response time",
                  "double text", "left on read", "analysis paralysis"],
        motivations=["Finding genuine connection", "Avoiding rejection and embarrassment",
                     "Understanding their match deeply"],
        fears=["Saying the wrong thing", "Being ghosted without explanation",
               "Moving too fast or too slow"],
        dating_goals=["Build emotional intimacy before physical",
                      "Find someone patient and understanding",
                      "Take things at a comfortable pace"],
        typical_behaviors=["Drafts messages in notes app first",
                           "Screenshots conversations for friend analysis",
                           "Researches matches extensively",
                           "Delays responses to seem less eager"],
        communication_style="Thoughtful, sometimes delayed, wants meaningful conversations over small talk",
        pain_points=["Texting anxiety", "Fear of coming on too strong",
                     "Analysis paralysis on when to meet", "Ghosting triggers spiraling thoughts"],
    ),
    Persona(
        persona_id=None,
        name="The Slow Burner",
        tagline="Patience is a virtue, especially in love",
        description=(
            "The Slow Burner believes real connections take time. They prefer phone calls over "
            "texting and genuine getting-to-know-you phases over instant chemistry."
        ),
        emoji="🕯️",
        color="#f59e0b",
        keywords=["slow burn", "take it slow", "no rush", "getting to know", "long term",
                  "patience", "friendship first"],
        motivations=["Building lasting relationships", "Finding depth over excitement",
                     "Creating genuine emotional bonds"],
        fears=["Rushing into something wrong", "Superficial connections",
               "Being pressured to commit too fast"],
        dating_goals=["Develop friendship first", "Multiple dates before labels",
                      "Natural progression of intimacy"],
        typical_behaviors=["Prefers phone/video calls", "Suggests activity dates over drinks",
                           "Takes weeks to define the relationship",
                           "Values consistency over grand gestures"],
        communication_style="Steady, prefers voice over text, values quality over quantity of interaction",
        pain_points=["Pressure to DTR too quickly", "Matching with impatient people",
                     "App fatigue from swiping culture", 'Feeling "too slow" for modern dating'],
    ),
    Persona(
        persona_id=None,
        name="The Chaos Creative",
        tagline="Life's too short for boring dates",
        description=(
            "The Chaos Creative thrives on spontaneity and novelty. They suggest unconventional "
            "dates, send voice notes at 2am, and break the rules."
        ),
        emoji="🌪️",
        color="#ec4899",
        keywords=["spontaneous", "adventure", "unconventional", "voice notes", "energy",
                  "fun", "wild"],
        motivations=["Excitement and novelty", "Authentic, unfiltered connections",
                     "Breaking out of dating app monotony"],
        fears=["Boring, predictable relationships", 'Being seen as "too much"',
               "Settling for less than fireworks"],
        dating_goals=["Find someone who matches their energy", "Have adventures together",
                      "Keep the spark alive long-term"],
        typical_behaviors=["Proposes unusual first date ideas",
                           "Heavy use of voice notes and videos",
                           'Impulsive "are you free right now?" messages',
                           "Bold, flirty openers"],
        communication_style="High energy, multimedia-heavy, loves banter",
        pain_points=['Matching with people who are "too serious"',
                     "Being misread as not relationship material",
                     "Finding others who can keep up", "Burnout from always initiating fun"],
    ),
    Persona(
        persona_id=None,
        name="The Energy Extrovert",
        tagline="Dating is a social sport",
        description=(
            "The Energy Extrovert brings friends into everything: double dates, group hangs, "
            "meeting the squad early."
        ),
        emoji="⚡",
        color="#06b6d4",
        keywords=["group date", "friends", "social", "squad", "double date", "party",
                  "outgoing"],
        motivations=["Finding someone who fits their social life", "Getting friend validation",
                     "Building a shared friend group"],
        fears=["Partner who isolates them", "Awkward friend introductions",
               "Having to choose between partner and friends"],
        dating_goals=["Integrate partner into friend group", "Active social life as a couple",
                      "Adventures with a team"],
        typical_behaviors=["Suggests group dates early", "Talks about their friends constantly",
                           "Active on social/dating simultaneously",
                           "Soft-launches relationships quickly"],
        communication_style="Gregarious, references friend opinions, prefers public social spaces",
        pain_points=["Matches who don't want to meet friends", "Finding group-friendly date ideas",
                     "Balancing 1:1 time with social time", "Friends not approving of matches"],
    ),
    Persona(
        persona_id=None,
        name="The Hopeful Romantic",
        tagline="Still believes in love stories",
        description=(
            "The Hopeful Romantic is keeping the dream alive despite dating app fatigue. They "
            "love grand gestures and are looking for their person."
        ),
        emoji="💕",
        color="#f43f5e",
        keywords=["romantic", "soulmate", "the one", "love story", "commitment", "labels",
                  "real love"],
        motivations=['Finding "the one"', "Experiencing movie-worthy moments",
                     "Deep emotional connection"],
        fears=["Becoming cynical", "Never finding real love", "Casual culture ruining romance"],
        dating_goals=["Committed, loving relationship", "Traditional milestones (eventually)",
                      "Someone who believes in love too"],
        typical_behaviors=["Creates date playlists", "Remembers small details",
                           "Plans thoughtful gestures", "Gets invested quickly"],
        communication_style="Warm, expressive, asks deep questions early, uses lots of emojis",
        pain_points=["Situationships and ambiguity", "Casual dating culture",
                     "Feeling naive for wanting romance",
                     'Getting hurt by people "not looking for anything serious"'],
    ),
    Persona(
        persona_id=None,
        name="The Practical Matcher",
        tagline="Efficient dating for busy lives",
        description=(
            "The Practical Matcher treats dating like a well-optimized process with clear "
            "criteria and no time for dead-ends."
        ),
        emoji="📊",
        color="#10b981",
        keywords=["efficient", "dealbreakers", "compatibility", "goals", "direct", "no games",
                  "practical"],
        motivations=["Finding a compatible partner efficiently",
                     "Not wasting time on wrong matches",
                     "Clear communication and expectations"],
        fears=["Wasting months on incompatible people", "Unclear intentions from matches",
               "Emotional manipulation"],
        dating_goals=["Find someone with aligned life goals",
                      "Skip the games, get to real compatibility",
                      "Build a partnership that works"],
        typical_behaviors=["Asks important questions early", "Has clear dealbreakers",
                           "Efficient at filtering matches",
                           "Prefers quick first meets to assess chemistry"],
        communication_style="Direct, efficient, values clarity, asks about intentions early",
        pain_points=["People who play games", "Unclear profile bios",
                     "Wasting time on small talk", 'Being seen as "too intense" for being direct'],
    ),
]


def seed_personas(store: PipelineStore) -> int:
    """Upsert the persona catalog by name. Returns the number of personas written."""
    for persona in PERSONAS:
        store.upsert_persona(persona)
        logger.info(f"  ✓ {persona.emoji} {persona.name}")
    logger.info(f"🌱 Seeded {len(PERSONAS)} personas")
    return len(PERSONAS)
