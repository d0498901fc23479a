import os

from setuptools import setup


def rel(*xs):
    return os.path.join(os.path.abspath(os.path.dirname(__file__)), *xs)


with open(rel("README.md")) as f:
    long_description = f.read()


with open(rel("coordis", "__init__.py")) as f:
    version_marker = "__version__ = "
    for line in f:
        if line.startswith(version_marker):
            _, version = line.split(version_marker)
            version = version.strip().strip('"')
            break
    else:
        raise RuntimeError("Version marker not found.")


dependencies = ["redis~=5.0", "prometheus-client>=0.2", "typing-extensions>=3.8", "attrs>=19.2.0"]

extra_dependencies = {
    "test": ["pytest", "pytest-cov", "pytest-timeout", "freezegun"],
}

extra_dependencies["dev"] = extra_dependencies["test"] + [
    # Linting
    "flake8",
    "flake8-bugbear",
    "flake8-quotes",
    "isort",
    "black~=23.12",
    "mypy~=1.10.0",
    "pyupgrade~=3.15.0",
    "types-redis",
    # Misc
    "pre-commit",
    "bumpversion",
    "hiredis",
    "twine",
]

setup(
    name="coordis",
    version=version,
    author="Wiremind",
    author_email="dev@wiremind.io",
    description="Distributed locks and counting semaphores on top of Redis.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=[
        "coordis",
        "coordis.helpers",
        "coordis.store",
        "coordis.store.backends",
    ],
    package_data={"coordis": ["py.typed"]},
    include_package_data=True,
    install_requires=dependencies,
    python_requires=">=3.10",
    extras_require=extra_dependencies,
    classifiers=[
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: System :: Distributed Computing",
        "License :: OSI Approved :: GNU Lesser General Public License v3 or later (LGPLv3+)",
    ],
)
