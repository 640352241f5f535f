import json
import logging
from openai import OpenAI, OpenAIError
from engine.errors import LLMError

logger = logging.getLogger(__name__)


class SmartieLLM:
    """OpenAI chat-completions client used by the decision and chat coaches.

    Built once by the application factory and handed to the engine
    functions. Without an API key it stays unconfigured and every call
    raises ``LLMError`` so callers take their rule-based path.
    """

    def __init__(self, api_key=None, model='gpt-4o', timeout=20.0, client=None):
        self.model = model
        self.client = client
        if self.client is None and api_key:
            try:
                self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=1)
            except OpenAIError as e:
                logger.warning('OpenAI init error: %s', e)

    @property
    def available(self):
        return self.client is not None

    def _create(self, **kwargs):
        if self.client is None:
            raise LLMError('No OpenAI client configured')
        try:
            response = self.client.chat.completions.create(model=self.model, **kwargs)
        except OpenAIError as e:
            raise LLMError(f'OpenAI request failed: {e}') from e
        if not response.choices:
            raise LLMError('OpenAI returned no choices')
        return response.choices[0].message

    def complete_json(self, prompt):
        """Single user prompt in, parsed JSON object out."""
        message = self._create(
            messages=[{'role': 'user', 'content': prompt}],
            response_format={'type': 'json_object'},
        )
        try:
            data = json.loads(message.content or '')
        except json.JSONDecodeError as e:
            raise LLMError(f'Model did not return JSON: {e}') from e
        if not isinstance(data, dict):
            raise LLMError('Model returned JSON that is not an object')
        return data

    def chat(self, system_prompt, message, tools=None, temperature=0.7, max_tokens=500):
        """Return ``(text, tool_calls)`` where tool_calls is a list of ``(name, arguments)``."""
        kwargs = {
            'messages': [
                {'role': 'system', 'content': system_prompt},
                {'role': 'user', 'content': message},
            ],
            'temperature': temperature,
            'max_tokens': max_tokens,
        }
        if tools:
            kwargs['tools'] = [{'type': 'function', 'function': t} for t in tools]
            kwargs['tool_choice'] = 'auto'
        reply = self._create(**kwargs)

        calls = []
        for call in reply.tool_calls or []:
            try:
                args = json.loads(call.function.arguments or '{}')
            except json.JSONDecodeError as e:
                raise LLMError(f'Bad arguments for {call.function.name}: {e}') from e
            if not isinstance(args, dict):
                raise LLMError(f'Arguments for {call.function.name} are not an object')
            calls.append((call.function.name, args))
        if not calls and not (reply.content or '').strip():
            raise LLMError('Model returned an empty reply')
        return reply.content or '', calls
