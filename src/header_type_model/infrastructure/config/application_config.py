"""Configuration management for the command line front end."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class Config:
    """Configuration for a batch analysis run."""

    input_paths: list[Path] = field(default_factory=list)
    output_dir: Path = Path("output")
    verbose: bool = False
    log_dir: Path = Path("logs")
    workers: int | None = None
    abi_file: Path | None = None

    @classmethod
    def from_env(cls, env_path: Path | None = None) -> "Config":
        """
        Load configuration from environment variables or .env file.

        Args:
            env_path: Optional path to .env file (defaults to .env in current directory)

        Returns:
            Config object
        """
        if env_path is None:
            env_path = Path.cwd() / ".env"

        if env_path.exists():
            load_dotenv(env_path)

        output_dir = Path(os.getenv("TYPEMODEL_OUTPUT_DIR", "output"))
        log_dir = Path(os.getenv("TYPEMODEL_LOG_DIR", "logs"))
        verbose = os.getenv("TYPEMODEL_VERBOSE", "false").lower() in ("true", "1", "yes")

        workers: int | None = None
        workers_str = os.getenv("TYPEMODEL_WORKERS")
        if workers_str:
            try:
                workers = int(workers_str)
            except ValueError:
                workers = None

        abi_str = os.getenv("TYPEMODEL_ABI_FILE")
        abi_file = Path(abi_str) if abi_str else None

        return cls(
            output_dir=output_dir,
            verbose=verbose,
            log_dir=log_dir,
            workers=workers,
            abi_file=abi_file,
        )

    @classmethod
    def from_args(
        cls,
        input_paths: list[Path] | None = None,
        output_dir: Path | None = None,
        verbose: bool | None = None,
        workers: int | None = None,
        abi_file: Path | None = None,
    ) -> "Config":
        """
        Create configuration from explicit arguments, falling back to environment.

        Args:
            input_paths: Header files or directories to analyze
            output_dir: Output directory (overrides env)
            verbose: Enable verbose output (overrides env)
            workers: Number of parser threads (overrides env)
            abi_file: JSON file with ABI overrides (overrides env)

        Returns:
            Config object
        """
        config = cls.from_env()

        if input_paths is not None:
            config.input_paths = list(input_paths)
        if output_dir is not None:
            config.output_dir = output_dir
        if verbose is not None:
            config.verbose = verbose
        if workers is not None:
            config.workers = workers
        if abi_file is not None:
            config.abi_file = abi_file

        return config

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.input_paths:
            raise ValueError("No input paths given")

        for path in self.input_paths:
            if not path.exists():
                raise ValueError(f"Input path not found: {path}")

        if self.workers is not None and self.workers < 1:
            raise ValueError(f"Worker count must be positive: {self.workers}")

        if self.abi_file is not None and not self.abi_file.is_file():
            raise ValueError(f"ABI file not found: {self.abi_file}")

    def ensure_output_dir(self) -> None:
        """Create the output directory if it doesn't exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
