"""
Prompt builders for the two oracle passes: classification and rubric scoring.
"""
from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from greenwire.models import MergedArticle

# One example per severity band to anchor the model's calibration.
FEW_SHOT_EXAMPLES = """
EXAMPLE 1 - Topic: "Community Recycling Initiative Launch"
Articles describe a new recycling program in a small town.
- healthLevel: MINIMAL, healthScore: 8
  Reasoning: No direct health effects. Theoretical waste reduction benefits are long-term and minor. Community participation is voluntary.
- ecoLevel: MINIMAL, ecoScore: 12
  Reasoning: Small-scale program with negligible immediate ecosystem impact. Diverts minimal waste from landfills. No measurable biodiversity or habitat effects.
- econLevel: MINIMAL, econScore: 5
  Reasoning: Minimal cost savings for the town. No job creation or economic disruption. Budget impact is trivial.

EXAMPLE 2 - Topic: "Delhi Air Quality Alert"
Articles report PM2.5 levels at 180 ug/m3, schools advising indoor activities.
- healthLevel: MODERATE, healthScore: 45
  Reasoning: Elevated particulate matter causes respiratory irritation, especially in children and elderly. Short-term exposure, reversible with air quality improvement. No mass casualties.
- ecoLevel: MODERATE, ecoScore: 28
  Reasoning: Urban air pollution has localized ecosystem effects (vegetation stress, reduced visibility). No ecosystem collapse or biodiversity loss.
- econLevel: MODERATE, econScore: 32
  Reasoning: Schools close for a few days, affecting some businesses. Healthcare costs rise slightly. Tourism unaffected long-term.

EXAMPLE 3 - Topic: "Great Barrier Reef Coral Bleaching"
Articles describe widespread bleaching affecting 80% of the reef due to marine heatwaves.
- healthLevel: MODERATE, healthScore: 28
  Reasoning: No direct human health effects. Indirect impacts on coastal communities (food security, mental health) are moderate.
- ecoLevel: SEVERE, ecoScore: 88
  Reasoning: 80% of the world's largest coral reef system affected. Repeated bleaching events prevent recovery. Cascading effects on marine biodiversity are well-documented.
- econLevel: SIGNIFICANT, econScore: 58
  Reasoning: Reef tourism generates $6.4B annually. Fisheries decline affects thousands of livelihoods. Recovery costs are enormous.

EXAMPLE 4 - Topic: "Fukushima Wastewater Release"
Articles describe Japan beginning release of treated radioactive wastewater into the Pacific.
- healthLevel: SIGNIFICANT, healthScore: 55
  Reasoning: Tritium and other radionuclides released into ocean. While diluted, long-term bioaccumulation risks are uncertain. Seafood contamination fears are widespread.
- ecoLevel: SEVERE, ecoScore: 78
  Reasoning: Unprecedented release of radioactive material into the Pacific over decades. Marine ecosystem effects are unknown and potentially irreversible. Sets a precedent for nuclear waste disposal.
- econLevel: SIGNIFICANT, econScore: 62
  Reasoning: China and South Korea ban Japanese seafood imports. Japanese fishing industry devastated. Regional trade disrupted.
"""

CLASSIFICATION_TEMPLATE = """You are an environmental news filter and classifier.

TASK 1 - FILTER: Identify which articles are about ENVIRONMENTAL topics.

INCLUDE articles about:
- Climate impacts: heatwaves, floods, droughts, storms, sea level rise
- Biodiversity: species extinction, habitat loss, wildlife decline
- Pollution: air quality, water contamination, plastic, chemicals (PFAS, etc.)
- Oceans: coral bleaching, acidification, overfishing, marine pollution
- Forests: deforestation, wildfires, forest degradation
- Energy & emissions: fossil fuels, renewables, carbon emissions
- Environmental policy: regulations, treaties, climate action

REJECT articles about:
- Celebrity/entertainment news
- Sports and games
- General politics (unless environmental policy)
- Business news (unless environmental impact)
- Technology (unless climate/environmental tech)
- Pet care, animal trivia, lifestyle
- Product reviews, shopping deals, promotions
- Q&A articles, FAQs, and "What is..." / "How does..." / "Why do..." educational content
- Evergreen/educational explainers with no specific date, event, or incident
- Listicles and trivia ("3 effects of...", "10 facts about...")
- Articles where the title is a question (strong signal of Q&A, not news)
- Research papers or academic studies (unless reporting on NEW findings with real-world impact)

NEWSWORTHINESS TEST - An article must pass ALL of these to be included:
1. Reports on a SPECIFIC recent event, incident, or development (not general knowledge)
2. Contains a date reference, named location, or specific actors/organizations
3. Is written as journalism (news report, investigation, analysis), NOT as Q&A, FAQ, tutorial, or educational explainer
4. Title is a statement, not a question (questions indicate Q&A content)

TASK 2 - CLASSIFY: Group relevant environmental articles into topics.

Use existing topics where they match. Create new topic names only when no existing topic fits.
Each topic should be a clear environmental issue (e.g. "Amazon Deforestation", "Delhi Air Quality Crisis").

Existing topics:
{topics}

Articles to classify:
{titles}

Respond with ONLY valid JSON, no other text:
{{
  "classifications": [{{"articleIndex": 0, "topicName": "Topic Name", "isNew": false}}, ...],
  "rejected": [1, 3, 5],
  "rejectionReasons": ["Celebrity news", "Pet care Q&A"]
}}"""

SCORING_TEMPLATE = """You are an environmental impact analyst scoring the severity of news events.
Analyze the following articles about "{topic}".

Articles:
{summaries}

## Scoring Rubric

For EACH of the three dimensions below, you MUST:
1. First, write 2-3 sentences of reasoning citing specific articles
2. Then, classify the severity level (MINIMAL / MODERATE / SIGNIFICANT / SEVERE)
3. Then, assign a numeric score within the level's range

### Severity Levels:
- MINIMAL (0-25): No measurable impact. Theoretical or negligible risk. Routine monitoring only.
- MODERATE (26-50): Localized, limited impact. Affects small population or confined area. Reversible.
- SIGNIFICANT (51-75): Widespread or serious impact. Large population or critical ecosystem affected. Difficult to reverse.
- SEVERE (76-100): Catastrophic, potentially irreversible. Mass casualties, ecosystem collapse, or economy-wide disruption.

### Dimensions:
1. **Health Impact**: Risk to human health and wellbeing: air/water quality, disease, food safety, physical harm, mortality
2. **Ecological Impact**: Damage to ecosystems and biodiversity: species loss, habitat destruction, deforestation, ocean/water/soil damage
3. **Economic Impact**: Financial and livelihood consequences: industry disruption, job losses, infrastructure damage, agricultural losses, cleanup costs

{examples}

## Anti-Bias Instructions
- Do NOT default to MODERATE. Use the full range of levels based on evidence.
- Base severity ONLY on what the articles describe, not on general knowledge about the topic.
- If the articles do not contain enough information to assess a dimension, use "INSUFFICIENT_DATA" as the level and -1 as the score.
- A new recycling program and a nuclear disaster should NOT receive similar scores.

## Response Format

Respond with ONLY valid JSON:
{{
  "healthReasoning": "2-3 sentences citing specific articles",
  "healthLevel": "MODERATE",
  "healthScore": 38,
  "ecoReasoning": "2-3 sentences citing specific articles",
  "ecoLevel": "SIGNIFICANT",
  "ecoScore": 65,
  "econReasoning": "2-3 sentences citing specific articles",
  "econLevel": "MINIMAL",
  "econScore": 18,
  "overallSummary": "1-2 sentence synthesis of the combined environmental impact",
  "category": "climate",
  "region": "Global",
  "keywords": ["keyword1", "keyword2"]
}}

IMPORTANT:
- The numeric score MUST fall within the range for the level you chose.
- The overall score and urgency will be computed server-side. Do NOT include them.
- Use "INSUFFICIENT_DATA" and -1 if a dimension cannot be assessed from the articles."""


def build_classification_prompt(
    articles: Sequence[MergedArticle],
    existing_topics: Iterable[Tuple[str, Sequence[str]]],
) -> str:
    """Articles are numbered from 0 within the batch; topics are (name, keywords) pairs."""
    topics = "\n".join(
        f'- "{name}" (keywords: {", ".join(keywords)})' for name, keywords in existing_topics
    )
    titles = "\n".join(f"{index}. {article.title}" for index, article in enumerate(articles))
    return CLASSIFICATION_TEMPLATE.format(topics=topics or "(none yet)", titles=titles)


def build_scoring_prompt(topic_name: str, articles: Sequence[MergedArticle]) -> str:
    summaries = "\n".join(
        f"- {article.title}: {article.description or 'No description'}" for article in articles
    )
    return SCORING_TEMPLATE.format(topic=topic_name, summaries=summaries, examples=FEW_SHOT_EXAMPLES)
