from .shared_fns import convert_to_numpy, normalize, dnorm, index_expansion, index_subset
