from log_config import use_stdlib_default

use_stdlib_default()
