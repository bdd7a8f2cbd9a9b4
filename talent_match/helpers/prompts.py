PROFILE_EXTRACT_PROMPT = """Analyze the profile content and return ONLY a JSON object of the following structure:
{{
  "location": ["list of available locations of a person"],
  "language": ["list of languages spoken by a person"],
  "education": ["history of the person's education"],
  "position": ["list of positions the person has worked at"],
  "skills": ["list of skills that a person has"],
  "certifications": ["list of certifications of the person"]
}}
Profile content to analyze:
{profile}
DO NOT add anything else.
"""

REQUIREMENTS_PROMPT = """Extract specific requirements from the job description and return ONLY a JSON object with this structure:
{{
  "location": ["list of available locations"],
  "language": ["list of necessary languages"],
  "education": ["list of background majors or degrees that the employee should have"],
  "position": ["position or job title"],
  "skills": ["list of skills desired in an employee"],
  "certifications": ["list of certifications desired in an employee"]
}}
Job Description:
{job_description}
DO NOT add anything else.
"""

FACET_COMPARE_PROMPT = """Compare the profile's {facet} content with the job requirements and return ONLY a JSON object of the following format:
{{
  "matchPercentage": <number between 0 and 100>,
  "relevantContent": ["list of relevant content from the profile"],
  "explanation": "Brief explanation of the matching analysis"
}}
Profile {facet}: {profile_content}
Required {facet}: {required_content}
DO NOT add anything else.
"""
