"""
Load-test script loading.

Scripts are JSON documents with a ``config`` section and a list of
``scenarios``, each carrying a ``flow`` of declarative steps.
"""

import importlib
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ..exceptions import ScriptLoadException

logger = logging.getLogger(__name__)


def load_script(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and minimally validate a script file.

    Raises:
        ScriptLoadException: if the file is missing, not JSON, or not shaped
            like a script
    """
    script_path = Path(path)
    try:
        with open(script_path, 'r', encoding='utf-8') as f:
            script = json.load(f)
    except FileNotFoundError as e:
        raise ScriptLoadException(f"Script not found: {script_path}", path=str(script_path), original_exception=e) from e
    except json.JSONDecodeError as e:
        raise ScriptLoadException(f"Invalid JSON in script: {e}", path=str(script_path), original_exception=e) from e

    if not isinstance(script, dict):
        raise ScriptLoadException("Script must be a JSON object", path=str(script_path))

    script.setdefault('config', {})
    scenarios = script.setdefault('scenarios', [])
    if not isinstance(scenarios, list):
        raise ScriptLoadException("'scenarios' must be a list", path=str(script_path))

    logger.info(f"Loaded script {script_path} with {len(scenarios)} scenario(s)")
    return script


def load_processor(module_name: str) -> Dict[str, Callable]:
    """Collect the public callables of a module as a processor registry"""
    module = importlib.import_module(module_name)
    return {
        name: value for name, value in vars(module).items()
        if callable(value) and not name.startswith('_') and not isinstance(value, type)
    }


def attach_processor(script: Dict[str, Any], module_name: Optional[str]) -> Dict[str, Any]:
    """Install a processor module's functions into the script config"""
    if not module_name:
        return script
    registry = dict(script['config'].get('processor') or {})
    registry.update(load_processor(module_name))
    script['config']['processor'] = registry
    logger.info(f"Loaded {len(registry)} processor function(s) from {module_name}")
    return script
