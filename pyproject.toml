[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hevtasks"
version = "5.6.1"
description = "Cooperative task system with a fair scheduler, timers, an I/O reactor, mutexes, conditions and channels"
requires-python = ">=3.10"
dependencies = []
keywords = ["task", "scheduler", "cooperative", "reactor", "channel", "epoll", "kqueue"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Operating System :: MacOS",
    "Operating System :: POSIX :: BSD",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
hevtasks-demo = "hevtasks.demos:main"

[tool.hatch.build.targets.wheel]
packages = ["hevtasks"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
