#!/usr/bin/env python3
"""Setup script for MindMesh."""

from setuptools import setup, find_packages

setup(
    name="mindmesh",
    version="1.0.0",
    description="Collaborative mind map client with live tree synchronisation",
    author="MindMesh Project",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "python-socketio[client]>=5.10",
        "httpx>=0.27",
    ],
    extras_require={
        "gui": [
            "PyGObject>=3.46.0",
            "pycairo>=1.25.0",
        ],
        "test": [
            "pytest>=7.4",
        ],
    },
    entry_points={
        "console_scripts": [
            "mindmesh=mindmesh.launcher:main",
        ],
        "gui_scripts": [
            "mindmesh-gui=mindmesh.launcher:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: X11 Applications :: GTK",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business",
    ],
)
