from setuptools import setup, find_packages

setup(
    name="palm-descriptor",
    version="1.0.0",
    description="Patch-wise Approximated Local Moments: Zernike pattern-code histograms for texture and palmprint matching",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="PALM Team",
    author_email="palm@example.com",
    url="https://github.com/username/palm",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "opencv-contrib-python>=4.5.0",
        "numpy>=1.19.0",
        "scipy>=1.5.0",
        "scikit-image>=0.17.0",
        "matplotlib>=3.3.0",
    ],
    extras_require={
        "dev": [
            "pytest>=6.0.0",
            "black>=21.0.0",
            "flake8>=3.8.0",
        ]
    },
    python_requires=">=3.7",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],
)
