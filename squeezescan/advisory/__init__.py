from squeezescan.advisory.base import AdvisoryClient, build_payload, parse_advisory
from squeezescan.advisory.openai_advisor import OpenAIAdvisor

__all__ = ["AdvisoryClient", "OpenAIAdvisor", "build_payload", "parse_advisory"]
