[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xiangqi_tui"
version = "0.1.0"
description = "Xiangqi (Chinese chess) engine layer and prompt handling for a terminal front end"
requires-python = ">=3.10"
dependencies = []
keywords = ["xiangqi", "chinese-chess", "uci", "ucci", "chess-engine"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Board Games",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["xiangqi_tui"]

[tool.pytest.ini_options]
addopts = "-ra"
