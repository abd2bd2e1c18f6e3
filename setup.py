from setuptools import find_packages, setup

setup(
    name="ctfile-fs",
    version="0.1.0",
    description="Path-based filesystem access to CTFile cloud storage",
    author="Daniel T Sasser II",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "requests>=2.28.0",
        "cachetools>=5.0.0",
    ],
    entry_points={
        "console_scripts": [
            "ctfile-fs=ctfile_fs.__main__:main",
        ],
    },
    python_requires=">=3.10",
    extras_require={
        "dev": [
            "pytest",
            "responses",
            "build",
            "twine",
        ],
    },
)
