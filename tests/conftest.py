import asyncio
import json
import os

import pytest

os.environ.setdefault("ENVIRONMENT", "testing")

from talent_match.models.settings import ProcessingSettings  # noqa: E402


class ScriptedClient:
    """Completion backend stand-in answering every prompt through ``responder``"""

    def __init__(self, responder, delay: float = 0):
        self.responder = responder
        self.delay = delay
        self.prompts = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def complete(self, conversation):
        prompt = conversation[-1]["content"]
        self.prompts.append(prompt)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            answer = self.responder(prompt)
        finally:
            self.in_flight -= 1
        if isinstance(answer, Exception):
            raise answer
        return answer


def profile_line(prompt: str, label: str) -> str:
    """Return the text after ``label`` on the first prompt line starting with it"""
    for line in prompt.splitlines():
        if line.startswith(label):
            return line[len(label):].strip()
    return ""


def facet_of(prompt: str) -> str:
    # "Compare the profile's <facet> content with ..."
    return prompt.split("Compare the profile's ", 1)[1].split(" ", 1)[0]


def java_responder(prompt: str):
    """Extracts skills from the flattened profile and scores Java overlap high"""
    if prompt.startswith("Analyze the profile content"):
        skills = [s.strip() for s in profile_line(prompt, "Skills:").split(",") if s.strip()]
        return json.dumps({
            "location": [], "language": ["English"], "education": [],
            "position": [], "skills": skills, "certifications": [],
        })
    if prompt.startswith("Extract specific requirements"):
        return "Sure! Here are the requirements:\n```json\n" + json.dumps({
            "location": ["Cracow"], "language": ["English"], "education": [],
            "position": ["Senior Java Developer"], "skills": ["Java"], "certifications": [],
        }) + "\n```"
    if prompt.startswith("Compare the profile's"):
        facet = facet_of(prompt)
        content = profile_line(prompt, f"Profile {facet}:")
        if facet == "skills":
            score = 90 if '"Java"' in content else 10
        else:
            score = 50
        return json.dumps({
            "matchPercentage": score,
            "relevantContent": json.loads(content or "[]"),
            "explanation": f"{facet} compared",
        })
    raise AssertionError(f"Unexpected prompt: {prompt[:60]}")


@pytest.fixture
def fast_processing():
    return ProcessingSettings(max_concurrent=5, retry_attempts=1, retry_delay=0)


@pytest.fixture
def candidates():
    return [
        {"id": "1", "firstName": "John", "skills": [{"name": "Java"}]},
        {"id": "2", "firstName": "Jane", "skills": [{"name": "Python"}]},
    ]


@pytest.fixture
def job_description():
    return (
        "We are seeking an experienced Senior Java Developer based in the Cracow Metropolitan Area. "
        "Requirements: proficient in Java, Spring Framework and Hibernate. English (Professional working proficiency)."
    )
