import setuptools

setuptools.setup(
    name='nutmeg',
    version='0.1.0',
    description=(
        'No-U-turn Hamiltonian Monte Carlo sampler with dual averaging step '
        'size adaptation'
    ),
    long_description=(
        'Nutmeg is a Python package implementing the No-U-Turn Sampler (NUTS),'
        ' an adaptive Hamiltonian Monte Carlo method, for drawing Markov '
        'chains from continuous target distributions specified by a log '
        'density function and its gradient.'
    ),
    packages=['nutmeg'],
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Topic :: Scientific/Engineering',
        'Intended Audience :: Science/Research',
        'Intended Audience :: Developers'
    ],
    keywords='inference sampling MCMC HMC NUTS',
    license='MIT',
    install_requires=['numpy>=1.17', 'scipy>=1.1'],
    python_requires='>=3.6',
    extras_require={
        'autodiff': ['autograd>=1.3'],
        'test': ['pytest>=6.0', 'autograd>=1.3'],
    }
)
