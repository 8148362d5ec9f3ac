"""
Tesseract command line assembly.

The engine CLI is positional-then-flagged and rejects other orderings:

    <image> <output-stem> -l <lang> --dpi <dpi> --psm <psm> --oem <oem> -c <key=val> [makebox]
"""

import copy
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from utilities import Print

DEFAULT_PSM = "3"
DEFAULT_OEM = "3"
DEFAULT_TESSTABLE = "tessedit_create_tsv=0"

# Keys of OcrArgs.config that reach the command line
CONFIG_KEYS = ("psm", "oem", "-c")


@dataclass
class OcrArgs:
    """
    Options for one Tesseract invocation.

    Attributes:
        out_filename: Output stem; the engine appends .txt or .box
        lang: Tesseract language code (e.g. 'eng', 'chi_sim')
        dpi: Resolution hint passed with --dpi
        boxfile: Request box output ('makebox') instead of plain text
        config: Engine flags: 'psm', 'oem' and '-c' (one key=value sub-option)
        invocation_id: When set, generated filenames carry this suffix
    """
    out_filename: str = "out"
    lang: str = "eng"
    dpi: int = 150
    boxfile: bool = False
    config: Dict[str, str] = field(default_factory=dict)
    invocation_id: Optional[str] = None

    @classmethod
    def from_config(cls, config: dict) -> "OcrArgs":
        """Build args from an engine config section, falling back to defaults."""
        defaults = cls()
        engine_flags = {}
        for key in ("psm", "oem"):
            if config.get(key) is not None:
                engine_flags[key] = str(config[key])
        if config.get("tesstable"):
            engine_flags["-c"] = str(config["tesstable"])
        return cls(
            out_filename=str(config.get('out_filename', defaults.out_filename)),
            lang=str(config.get('lang', config.get('language', defaults.lang))),
            dpi=int(config.get('dpi', defaults.dpi)),
            config=engine_flags,
        )

    def clone(self, **changes) -> "OcrArgs":
        """Copy with changes applied; the config mapping is copied too."""
        cloned = replace(self, config=copy.copy(self.config))
        return replace(cloned, **changes) if changes else cloned

    def with_unique_id(self) -> "OcrArgs":
        return self.clone(invocation_id=uuid.uuid4().hex)

    @property
    def out_stem(self) -> str:
        if self.invocation_id:
            return f"{self.out_filename}_{self.invocation_id}"
        return self.out_filename


def output_filename(args: OcrArgs) -> str:
    """Result artifact name: <stem>.box in box mode, <stem>.txt otherwise."""
    extension = ".box" if args.boxfile else ".txt"
    stem = args.out_stem
    if stem.endswith(extension):
        return stem
    return f"{stem}{extension}"


def build_command_args(image_arg: str, args: OcrArgs) -> List[str]:
    """Ordered argument list for the engine, without the executable itself."""
    for key, value in args.config.items():
        if key in CONFIG_KEYS:
            Print("DEBUG", f"Configuration: {key}: {value}")
        else:
            Print("WARNING", f"Configuration key '{key}' is not passed to Tesseract")

    psm = str(args.config.get("psm", DEFAULT_PSM))
    oem = str(args.config.get("oem", DEFAULT_OEM))
    tesstable_arg = str(args.config.get("-c", DEFAULT_TESSTABLE))

    cmd = [
        image_arg,
        args.out_stem,
        '-l', args.lang,
        '--dpi', str(args.dpi),
        '--psm', psm,
        '--oem', oem,
        '-c', tesstable_arg,
    ]
    if args.boxfile:
        cmd.append('makebox')
    return cmd
