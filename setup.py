from setuptools import setup

package_name = 'mechanism_dynamics'

setup(
    name=package_name,
    version='0.1.0',
    packages=[package_name],
    package_dir={package_name: 'src'},
    install_requires=['numpy', 'scipy'],
    extras_require={'test': ['pytest']},
    python_requires='>=3.8',
    zip_safe=True,
    maintainer='root',
    maintainer_email='franche1984@gmail.com',
    description='Mechanism state caching, mass matrix and inverse dynamics using twist-wrench formulation',
    license='MIT',
)
