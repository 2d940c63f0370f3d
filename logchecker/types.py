from typing import Literal

__all__ = (
    'SecureOption',
    'Logmails',
    'OutputFormat',
)

type SecureOption = Literal[None, 'STARTTLS', 'SSL/TLS']
type Logmails = Literal['always', 'never', 'onerror', 'instead']
type OutputFormat = Literal['JSON', 'YAML']
