[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "batchr"
version = "0.1.0"
description = "Stream a SurrealQL export file into a SurrealDB server in batched, concurrent imports"
requires-python = ">=3.10"
keywords = ["surrealdb", "import", "sql", "batch", "migration"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Typing :: Typed",
]
dependencies = [
    "httpx",
    "tqdm",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
]

[project.scripts]
batchr = "batchr.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["batchr"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
